"""Bot registry repository.

Static-method repository over the ``bots`` table. Each call opens its own
session from ``db_config.async_session`` and is bounded by
``storage_operation``.

State transitions go through ``transition()``, a compare-and-set UPDATE
guarded by the expected current status: two concurrent transitions on the
same bot can never both succeed.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update
from sqlalchemy.exc import IntegrityError

from wrbt_api.common.datetime_utils import utcnow
from wrbt_api.common.errors import Conflict
from wrbt_api.db_sqlite import db_config
from wrbt_api.db_sqlite.bots.models import BotStatus, BotTable, BotTier
from wrbt_api.db_sqlite.bots.schemas import BotInDB


class BotRepository:
    """Persistence for bot identities."""

    @staticmethod
    @db_config.storage_operation
    async def create(
        *,
        name: str,
        pairing_code: str,
        pairing_expires_at: datetime,
        contact_email: str | None = None,
        user_agent: str | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> BotInDB:
        """Insert a new pending READ_ONLY bot.

        Raises:
            Conflict: If the pairing code is already taken (caller regenerates)
        """
        async with db_config.async_session() as session:
            db_obj = BotTable(
                name=name,
                contact_email=contact_email,
                user_agent=user_agent,
                tier=BotTier.READ_ONLY,
                status=BotStatus.PENDING,
                pairing_code=pairing_code,
                pairing_expires_at=pairing_expires_at,
                metadata_fields=metadata or {},
            )
            session.add(db_obj)
            try:
                await session.commit()
            except IntegrityError as e:
                await session.rollback()
                raise Conflict("Pairing code already in use", code="PAIRING_CODE_COLLISION") from e
            await session.refresh(db_obj)
            return BotInDB.model_validate(db_obj)

    @staticmethod
    @db_config.storage_operation
    async def get_by_id(bot_id: str) -> BotInDB | None:
        async with db_config.async_session() as session:
            db_obj = await session.get(BotTable, bot_id)
            return BotInDB.model_validate(db_obj) if db_obj else None

    @staticmethod
    @db_config.storage_operation
    async def get_by_pairing_code(code: str) -> BotInDB | None:
        """Find a bot by its active or consumed pairing code."""
        stmt = (
            select(BotTable)
            .where(or_(BotTable.pairing_code == code, BotTable.consumed_pairing_code == code))
            .order_by(BotTable.created_at.desc())
            .limit(1)
        )
        async with db_config.async_session() as session:
            db_obj = (await session.execute(stmt)).scalar_one_or_none()
            return BotInDB.model_validate(db_obj) if db_obj else None

    @staticmethod
    @db_config.storage_operation
    async def get_by_token_lookup(token_lookup: str) -> BotInDB | None:
        """Indexed lookup by the token's SHA-256 digest."""
        stmt = select(BotTable).where(BotTable.token_lookup == token_lookup)
        async with db_config.async_session() as session:
            db_obj = (await session.execute(stmt)).scalar_one_or_none()
            return BotInDB.model_validate(db_obj) if db_obj else None

    @staticmethod
    @db_config.storage_operation
    async def list_bots(status: BotStatus | None = None) -> list[BotInDB]:
        """List bots newest first, optionally filtered by status."""
        stmt = select(BotTable).order_by(BotTable.created_at.desc())
        if status is not None:
            stmt = stmt.where(BotTable.status == status)
        async with db_config.async_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [BotInDB.model_validate(row) for row in rows]

    @staticmethod
    @db_config.storage_operation
    async def transition(bot_id: str, *, expected: BotStatus, values: dict[str, Any]) -> bool:
        """Compare-and-set update applied only if the bot is still in ``expected``.

        Args:
            bot_id: Bot to update
            expected: Status the caller observed
            values: Column values to write (must include the new status)

        Returns:
            True if this call performed the transition, False if another
            writer got there first (or the bot does not exist).
        """
        stmt = (
            update(BotTable)
            .where(BotTable.id == bot_id, BotTable.status == expected)
            .values(**values, updated_at=utcnow())
        )
        async with db_config.async_session() as session:
            async with session.begin():
                result = await session.execute(stmt)
            return result.rowcount == 1
