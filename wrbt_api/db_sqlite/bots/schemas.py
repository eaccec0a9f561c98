"""Bot Pydantic schemas for validation and serialization."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

from wrbt_api.common.datetime_utils import format_iso8601_utc, validate_aware_datetime
from wrbt_api.db_sqlite.bots.models import BotStatus, BotTier


class BotRead(BaseModel):
    """Admin view of a bot identity.

    Never includes token material (hash or lookup digest).
    """

    id: str = Field(examples=["V1StGXR8_Z5jdHi6B-myT0"], description="Unique bot identifier")
    name: str = Field(examples=["DocsCrawler"], description="Bot-supplied name")
    contact_email: str | None = Field(default=None, examples=["ops@example.com"])
    user_agent: str | None = Field(default=None, examples=["DocsCrawler/1.2"])
    tier: BotTier = Field(examples=["READ_ONLY"])
    status: BotStatus = Field(examples=["pending"])
    pairing_code: str | None = Field(
        default=None,
        examples=["QZKWMTRA"],
        description="Active pairing code (pending bots only)",
    )
    pairing_expires_at: datetime | None = Field(default=None, examples=["2026-02-03T11:00:00Z"])
    approved_at: datetime | None = Field(default=None)
    approved_by: str | None = Field(default=None, examples=["admin"])
    revoked_at: datetime | None = Field(default=None)
    revoked_reason: str | None = Field(default=None)
    metadata: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("metadata_fields", "metadata"),
        examples=[{"registered_from_ip": "203.0.113.7"}],
    )
    created_at: datetime = Field(examples=["2026-02-03T10:00:00Z"])
    updated_at: datetime = Field(examples=["2026-02-03T10:00:00Z"])

    model_config = ConfigDict(from_attributes=True)

    # Validator: Reject naive datetimes
    @field_validator(
        "pairing_expires_at", "approved_at", "revoked_at", "created_at", "updated_at", mode="before"
    )
    @classmethod
    def validate_timezone_aware(cls, v: datetime | None) -> datetime | None:
        """Ensure datetime is timezone-aware."""
        if isinstance(v, datetime):
            return validate_aware_datetime(v)
        return v

    # Serializer: Always output ISO 8601 with 'Z' suffix
    @field_serializer("pairing_expires_at", "approved_at", "revoked_at", "created_at", "updated_at")
    def serialize_datetime(self, dt: datetime | None) -> str | None:
        """Serialize datetime as ISO 8601 with 'Z' suffix."""
        return format_iso8601_utc(dt) if dt is not None else None


class BotListResponse(BaseModel):
    """Response for the admin bot listing."""

    bots: list[BotRead]
    total: int = Field(examples=[1])


class BotInDB(BotRead):
    """Schema for a bot with credential material (internal use only).

    Attributes:
        token_hash: Hashing-policy output for the issued bearer token
        token_lookup: SHA-256 hex digest of the token (non-secret index)
        consumed_pairing_code: Pairing code consumed by approval
    """

    token_hash: str | None = None
    token_lookup: str | None = None
    consumed_pairing_code: str | None = None
