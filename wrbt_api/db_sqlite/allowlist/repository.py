"""Bot allowlist repository."""

from datetime import datetime
from typing import Any

from sqlalchemy import or_, select, update

from wrbt_api.common.datetime_utils import utcnow
from wrbt_api.db_sqlite import db_config
from wrbt_api.db_sqlite.allowlist.models import AllowlistTable
from wrbt_api.db_sqlite.allowlist.schemas import AllowlistRead
from wrbt_api.db_sqlite.bots.models import BotTier


class AllowlistRepository:
    """Persistence for pre-approved platform identities."""

    @staticmethod
    @db_config.storage_operation
    async def create(
        *,
        platform: str,
        platform_user_id: str,
        tier: BotTier,
        added_by: str,
        platform_username: str | None = None,
        reason: str | None = None,
        expires_at: datetime | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> AllowlistRead:
        async with db_config.async_session() as session:
            db_obj = AllowlistTable(
                platform=platform,
                platform_user_id=platform_user_id,
                platform_username=platform_username,
                tier=tier,
                reason=reason,
                added_by=added_by,
                expires_at=expires_at,
                metadata_fields=metadata or {},
            )
            session.add(db_obj)
            await session.commit()
            await session.refresh(db_obj)
            return AllowlistRead.model_validate(db_obj)

    @staticmethod
    @db_config.storage_operation
    async def get_by_id(entry_id: str) -> AllowlistRead | None:
        async with db_config.async_session() as session:
            db_obj = await session.get(AllowlistTable, entry_id)
            return AllowlistRead.model_validate(db_obj) if db_obj else None

    @staticmethod
    @db_config.storage_operation
    async def find_active(platform: str, platform_user_id: str) -> AllowlistRead | None:
        """Return the non-revoked, non-expired entry for a platform identity."""
        now = utcnow()
        stmt = (
            select(AllowlistTable)
            .where(
                AllowlistTable.platform == platform,
                AllowlistTable.platform_user_id == platform_user_id,
                AllowlistTable.revoked_at.is_(None),
                or_(AllowlistTable.expires_at.is_(None), AllowlistTable.expires_at > now),
            )
            .order_by(AllowlistTable.created_at.desc())
            .limit(1)
        )
        async with db_config.async_session() as session:
            db_obj = (await session.execute(stmt)).scalar_one_or_none()
            return AllowlistRead.model_validate(db_obj) if db_obj else None

    @staticmethod
    @db_config.storage_operation
    async def list_entries(include_revoked: bool = False) -> list[AllowlistRead]:
        stmt = select(AllowlistTable).order_by(AllowlistTable.created_at.desc())
        if not include_revoked:
            stmt = stmt.where(AllowlistTable.revoked_at.is_(None))
        async with db_config.async_session() as session:
            rows = (await session.execute(stmt)).scalars().all()
            return [AllowlistRead.model_validate(row) for row in rows]

    @staticmethod
    @db_config.storage_operation
    async def revoke(entry_id: str, *, revoked_by: str, reason: str | None) -> bool:
        """Revoke an entry unless it is already revoked (compare-and-set)."""
        now = utcnow()
        stmt = (
            update(AllowlistTable)
            .where(AllowlistTable.id == entry_id, AllowlistTable.revoked_at.is_(None))
            .values(revoked_at=now, revoked_by=revoked_by, revoked_reason=reason, updated_at=now)
        )
        async with db_config.async_session() as session:
            async with session.begin():
                result = await session.execute(stmt)
            return result.rowcount == 1
