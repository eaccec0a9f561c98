"""Bot request audit Pydantic schemas."""

from dataclasses import dataclass
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_serializer


@dataclass(frozen=True)
class BotRequestLogEntry:
    """One audit record as produced by the request authenticator."""

    bot_id: str | None
    endpoint: str
    method: str
    status_code: int | None
    ip_address: str | None
    user_agent: str | None
    response_time_ms: int | None


class BotRequestRead(BaseModel):
    """Schema for reading an audit record."""

    id: str
    bot_id: str | None = Field(default=None, description="NULL when the token matched no bot")
    endpoint: str = Field(examples=["/api/bot/whoami"])
    method: str = Field(examples=["GET"])
    status_code: int | None = Field(default=None, examples=[200])
    ip_address: str | None = Field(default=None, examples=["203.0.113.7"])
    user_agent: str | None = Field(default=None)
    response_time_ms: int | None = Field(default=None, examples=[12])
    created_at: datetime = Field(examples=["2026-02-03T10:00:00Z"])

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("created_at")
    def serialize_datetime(self, dt: datetime) -> str:
        """Serialize with millisecond precision so newest-first order is visible."""
        return dt.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class BotRequestPage(BaseModel):
    """Paginated audit records, newest first."""

    requests: list[BotRequestRead]
    limit: int
    offset: int
    has_more: bool
