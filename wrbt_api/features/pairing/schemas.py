"""Pairing request/response schemas."""

from datetime import datetime

from pydantic import BaseModel, EmailStr, Field, field_serializer, field_validator

from wrbt_api.common.datetime_utils import format_iso8601_utc
from wrbt_api.db_sqlite.bots.models import BotStatus, BotTier


class RegisterRequest(BaseModel):
    """Body of ``POST /api/bots/register``.

    ``platform`` and ``platform_user_id`` are optional; when both match an
    active allowlist entry the bot is approved immediately.
    """

    name: str = Field(..., max_length=100, examples=["DocsCrawler"])
    contact_email: EmailStr | None = Field(default=None, examples=["ops@example.com"])
    user_agent: str | None = Field(default=None, max_length=500, examples=["DocsCrawler/1.2"])
    platform: str | None = Field(default=None, max_length=32, examples=["discord"])
    platform_user_id: str | None = Field(default=None, max_length=128)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 3:
            raise ValueError("name must be at least 3 characters")
        return v


class RegisterResponse(BaseModel):
    """Registration outcome.

    ``token`` is only present on the allowlist fast path and is shown once.
    """

    bot_id: str = Field(examples=["V1StGXR8_Z5jdHi6B-myT0"])
    pairing_code: str = Field(examples=["QZKWMTRA"])
    status_url: str = Field(examples=["/api/bots/status/QZKWMTRA"])
    expires_at: datetime = Field(examples=["2026-02-03T11:00:00Z"])
    status: BotStatus = Field(default=BotStatus.PENDING)
    tier: BotTier = Field(default=BotTier.READ_ONLY)
    message: str
    token: str | None = Field(default=None, description="Plaintext bearer token (fast path only)")

    @field_serializer("expires_at")
    def serialize_datetime(self, dt: datetime) -> str:
        return format_iso8601_utc(dt)


class PairingStatusResponse(BaseModel):
    """Response of ``GET /api/bots/status/{code}``. Never carries a token."""

    status: BotStatus
    bot_id: str
    message: str
    expires_at: datetime | None = None
    tier: BotTier | None = None
    approved_at: datetime | None = None
    token_collected: bool | None = Field(
        default=None, description="True once the token has been issued (approved bots)"
    )
    revoked_at: datetime | None = None
    revoked_reason: str | None = None

    @field_serializer("expires_at", "approved_at", "revoked_at")
    def serialize_datetime(self, dt: datetime | None) -> str | None:
        return format_iso8601_utc(dt) if dt is not None else None


class ApprovalResponse(BaseModel):
    """Admin approve result. ``token`` is returned exactly once."""

    status: BotStatus = BotStatus.APPROVED
    bot_id: str
    tier: BotTier
    token: str = Field(examples=["wrbt_0123456789abcdef0123456789abcdef"])
    approved_at: datetime
    approved_by: str

    @field_serializer("approved_at")
    def serialize_datetime(self, dt: datetime) -> str:
        return format_iso8601_utc(dt)


class RevokeRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500, examples=["Abusive crawling"])


class RevocationResponse(BaseModel):
    status: BotStatus = BotStatus.REVOKED
    bot_id: str
    revoked_at: datetime
    revoked_reason: str | None = None

    @field_serializer("revoked_at")
    def serialize_datetime(self, dt: datetime) -> str:
        return format_iso8601_utc(dt)
