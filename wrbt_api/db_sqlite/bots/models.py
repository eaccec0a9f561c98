"""Bot identity database model.

Uses modern SQLAlchemy 2.0 syntax with Mapped[] type hints.
"""

import enum
from datetime import datetime
from typing import Any

from sqlalchemy import JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from wrbt_api.common.datetime_utils import UTCDateTime, utcnow
from wrbt_api.common.utils import generate_id
from wrbt_api.db_sqlite.base import Base


class BotStatus(enum.StrEnum):
    """Pairing lifecycle. Only PENDING->APPROVED, PENDING->REVOKED, APPROVED->REVOKED."""

    PENDING = "pending"
    APPROVED = "approved"
    REVOKED = "revoked"


class BotTier(enum.StrEnum):
    """Coarse permission level of an approved bot."""

    READ_ONLY = "READ_ONLY"
    WRITE_LIMITED = "WRITE_LIMITED"


class BotTable(Base):
    """Registered automated client.

    The registry is the single source of truth for a bot's status. Only the
    hash of a bearer token is stored; ``token_lookup`` is a non-secret SHA-256
    digest used as a unique index so authentication never scans all bots.
    """

    __tablename__ = "bots"

    # Primary key
    id: Mapped[str] = mapped_column(
        String(22), primary_key=True, default=lambda: generate_id(size=22)
    )

    # Bot-supplied description
    name: Mapped[str] = mapped_column(String, nullable=False)
    contact_email: Mapped[str | None] = mapped_column(String, nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)

    # Access control
    tier: Mapped[str] = mapped_column(String(16), nullable=False, default=BotTier.READ_ONLY)
    status: Mapped[str] = mapped_column(
        String(16), nullable=False, default=BotStatus.PENDING, index=True
    )

    # Pairing (only meaningful while pending)
    pairing_code: Mapped[str | None] = mapped_column(String(8), nullable=True, unique=True)
    pairing_expires_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    # Code consumed by approval; answers status polls, can never approve again
    consumed_pairing_code: Mapped[str | None] = mapped_column(
        String(8), nullable=True, unique=True
    )

    # Credentials
    token_hash: Mapped[str | None] = mapped_column(String, nullable=True)
    token_lookup: Mapped[str | None] = mapped_column(String(64), nullable=True, unique=True)

    # Transition audit trail
    approved_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String, nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    revoked_reason: Mapped[str | None] = mapped_column(String, nullable=True)

    # Free-form bag (originating IP, platform, ...). "metadata" is reserved by SQLAlchemy.
    metadata_fields: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )

    # Timestamps - Always UTC with timezone awareness
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, onupdate=utcnow
    )
