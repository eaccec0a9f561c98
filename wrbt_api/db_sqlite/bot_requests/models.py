"""Bot request audit log database model."""

from datetime import datetime

from sqlalchemy import ForeignKey, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from wrbt_api.common.datetime_utils import UTCDateTime, utcnow
from wrbt_api.common.utils import generate_id
from wrbt_api.db_sqlite.base import Base


class BotRequestTable(Base):
    """Immutable record of one request on a bot-protected endpoint.

    ``bot_id`` is NULL when the presented token matched no bot.
    Rows are insert-only; retention is handled outside this service.
    """

    __tablename__ = "bot_requests"

    id: Mapped[str] = mapped_column(
        String(22), primary_key=True, default=lambda: generate_id(size=22)
    )

    bot_id: Mapped[str | None] = mapped_column(
        String(22), ForeignKey("bots.id"), nullable=True, index=True
    )

    endpoint: Mapped[str] = mapped_column(String, nullable=False)
    method: Mapped[str] = mapped_column(String(10), nullable=False)
    status_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(45), nullable=True)
    user_agent: Mapped[str | None] = mapped_column(String, nullable=True)
    response_time_ms: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, nullable=False, default=utcnow, index=True
    )
