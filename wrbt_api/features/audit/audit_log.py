"""Audit log over the ``bot_requests`` table.

Recording is fire-and-report: a failed write is logged and dropped so that
audit storage trouble never breaks serving traffic.
"""

from loguru import logger

from wrbt_api.db_sqlite.bot_requests.repository import BotRequestRepository
from wrbt_api.db_sqlite.bot_requests.schemas import BotRequestLogEntry, BotRequestPage

MAX_QUERY_LIMIT = 100


class AuditLog:
    """Append-only sink of authenticated-path requests."""

    @staticmethod
    async def record(entry: BotRequestLogEntry) -> None:
        """Persist one audit entry. Never raises."""
        try:
            await BotRequestRepository.create(entry)
        except Exception as e:
            logger.error(
                "Failed to record bot request audit entry",
                extra={
                    "bot_id": entry.bot_id,
                    "endpoint": entry.endpoint,
                    "status_code": entry.status_code,
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )

    @staticmethod
    async def query(bot_id: str | None, limit: int = 50, offset: int = 0) -> BotRequestPage:
        """Return audit entries for a bot, newest first.

        ``limit`` is clamped to [1, 100] and ``offset`` to >= 0.
        """
        limit = min(max(limit, 1), MAX_QUERY_LIMIT)
        offset = max(offset, 0)

        # Fetch one extra row to know whether another page exists
        rows = await BotRequestRepository.list_for_bot(bot_id, limit=limit + 1, offset=offset)
        return BotRequestPage(
            requests=rows[:limit],
            limit=limit,
            offset=offset,
            has_more=len(rows) > limit,
        )
