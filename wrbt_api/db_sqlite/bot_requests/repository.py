"""Bot request audit repository (insert + newest-first reads only)."""

from sqlalchemy import select

from wrbt_api.db_sqlite import db_config
from wrbt_api.db_sqlite.bot_requests.models import BotRequestTable
from wrbt_api.db_sqlite.bot_requests.schemas import BotRequestLogEntry, BotRequestRead


class BotRequestRepository:
    """Persistence for the append-only bot request log."""

    @staticmethod
    @db_config.storage_operation
    async def create(entry: BotRequestLogEntry) -> None:
        async with db_config.async_session() as session:
            session.add(
                BotRequestTable(
                    bot_id=entry.bot_id,
                    endpoint=entry.endpoint,
                    method=entry.method,
                    status_code=entry.status_code,
                    ip_address=entry.ip_address,
                    user_agent=entry.user_agent,
                    response_time_ms=entry.response_time_ms,
                )
            )
            await session.commit()

    @staticmethod
    @db_config.storage_operation
    async def list_for_bot(bot_id: str | None, *, limit: int, offset: int) -> list[BotRequestRead]:
        """Return audit records for a bot, newest first.

        ``bot_id=None`` returns the records of requests that matched no bot.
        """
        stmt = select(BotRequestTable)
        if bot_id is None:
            stmt = stmt.where(BotRequestTable.bot_id.is_(None))
        else:
            stmt = stmt.where(BotRequestTable.bot_id == bot_id)
        stmt = stmt.order_by(BotRequestTable.created_at.desc()).limit(limit).offset(offset)

        async with db_config.async_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [BotRequestRead.model_validate(row) for row in rows]
