"""Configuration endpoint schemas."""

from pydantic import BaseModel, Field


class RateLimitPolicyInfo(BaseModel):
    max_requests: int = Field(examples=[3])
    window_seconds: int = Field(examples=[3600])


class ConfigResponse(BaseModel):
    """Runtime configuration response.

    Exposes the non-sensitive settings a bot author needs to integrate:
    pairing code lifetime, token format and public rate limits.
    """

    environment: str = Field(description="Current environment (development/production)")
    pairing_code_length: int = Field(examples=[8])
    pairing_code_ttl_seconds: int = Field(examples=[3600])
    token_prefix: str = Field(examples=["wrbt_"], description="Bearer tokens start with this prefix")
    bot_protected_prefixes: list[str] = Field(examples=[["/api/bot"]])
    rate_limits: dict[str, RateLimitPolicyInfo]
