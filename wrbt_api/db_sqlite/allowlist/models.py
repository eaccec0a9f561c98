"""Bot allowlist database model."""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from wrbt_api.common.datetime_utils import UTCDateTime, utcnow
from wrbt_api.common.utils import generate_id
from wrbt_api.db_sqlite.base import Base
from wrbt_api.db_sqlite.bots.models import BotTier


class AllowlistTable(Base):
    """Pre-approved external platform identity (e.g. a Discord user).

    A bot registering with a matching (platform, platform_user_id) is approved
    without waiting for an admin. Revocation is terminal.
    """

    __tablename__ = "bot_allowlist"

    id: Mapped[str] = mapped_column(
        String(22), primary_key=True, default=lambda: generate_id(size=22)
    )

    platform: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    platform_user_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    platform_username: Mapped[str | None] = mapped_column(String, nullable=True)

    tier: Mapped[str] = mapped_column(String(16), nullable=False, default=BotTier.READ_ONLY)
    reason: Mapped[str | None] = mapped_column(String, nullable=True)
    added_by: Mapped[str] = mapped_column(String, nullable=False)

    expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(String, nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    metadata_fields: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
