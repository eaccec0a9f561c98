"""Allowlist Pydantic schemas."""

from datetime import datetime
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_serializer, field_validator

from wrbt_api.common.datetime_utils import format_iso8601_utc, validate_aware_datetime
from wrbt_api.db_sqlite.bots.models import BotTier


class AllowlistCreate(BaseModel):
    """Schema for adding a pre-approved platform identity."""

    platform: str = Field(..., min_length=1, max_length=32, examples=["discord"])
    platform_user_id: str = Field(..., min_length=1, examples=["80351110224678912"])
    platform_username: str | None = Field(default=None, examples=["nelly"])
    tier: BotTier = Field(default=BotTier.READ_ONLY)
    reason: str | None = Field(default=None, examples=["Maintainer of the docs sync bot"])
    expires_at: datetime | None = Field(default=None, examples=["2026-12-31T00:00:00Z"])
    metadata: dict[str, Any] = Field(default_factory=dict)

    @field_validator("platform")
    @classmethod
    def normalize_platform(cls, v: str) -> str:
        return v.strip().lower()

    @field_validator("expires_at")
    @classmethod
    def validate_timezone_aware(cls, v: datetime | None) -> datetime | None:
        """Ensure datetime is timezone-aware."""
        if v is not None:
            return validate_aware_datetime(v)
        return v


class AllowlistRevokeRequest(BaseModel):
    reason: str | None = Field(default=None, max_length=500)


class AllowlistRead(BaseModel):
    """Schema for reading an allowlist entry."""

    id: str
    platform: str
    platform_user_id: str
    platform_username: str | None = None
    tier: BotTier
    reason: str | None = None
    added_by: str
    expires_at: datetime | None = None
    revoked_at: datetime | None = None
    revoked_by: str | None = None
    revoked_reason: str | None = None
    metadata: dict[str, Any] = Field(
        default_factory=dict, validation_alias=AliasChoices("metadata_fields", "metadata")
    )
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("expires_at", "revoked_at", "created_at")
    def serialize_datetime(self, dt: datetime | None) -> str | None:
        """Serialize datetime as ISO 8601 with 'Z' suffix."""
        return format_iso8601_utc(dt) if dt is not None else None


class AllowlistListResponse(BaseModel):
    entries: list[AllowlistRead]
    total: int
