"""Allowlist service: admin-managed fast-path trust for known platform identities."""

from loguru import logger

from wrbt_api.common.errors import AlreadyRevoked, Conflict, NotFound
from wrbt_api.db_sqlite.allowlist.repository import AllowlistRepository
from wrbt_api.db_sqlite.allowlist.schemas import AllowlistCreate, AllowlistRead


class AllowlistService:
    @staticmethod
    async def add(data: AllowlistCreate, *, added_by: str) -> AllowlistRead:
        """Add an entry.

        Raises:
            Conflict: If an active entry already exists for the platform identity
        """
        existing = await AllowlistRepository.find_active(data.platform, data.platform_user_id)
        if existing is not None:
            raise Conflict(
                f"Active allowlist entry already exists for {data.platform}:{data.platform_user_id}",
                entry_id=existing.id,
            )

        entry = await AllowlistRepository.create(
            platform=data.platform,
            platform_user_id=data.platform_user_id,
            platform_username=data.platform_username,
            tier=data.tier,
            reason=data.reason,
            added_by=added_by,
            expires_at=data.expires_at,
            metadata=data.metadata,
        )
        logger.info(
            "Allowlist entry added",
            extra={
                "entry_id": entry.id,
                "platform": entry.platform,
                "platform_user_id": entry.platform_user_id,
                "tier": entry.tier,
                "added_by": added_by,
            },
        )
        return entry

    @staticmethod
    async def revoke(entry_id: str, *, revoked_by: str, reason: str | None = None) -> AllowlistRead:
        """Revoke an entry (terminal).

        Raises:
            NotFound: Unknown entry id
            AlreadyRevoked: Entry was already revoked
        """
        entry = await AllowlistRepository.get_by_id(entry_id)
        if entry is None:
            raise NotFound(f"Allowlist entry not found: {entry_id}")
        if entry.revoked_at is not None:
            raise AlreadyRevoked("Allowlist entry is already revoked")

        if not await AllowlistRepository.revoke(entry_id, revoked_by=revoked_by, reason=reason):
            raise AlreadyRevoked("Allowlist entry is already revoked")

        logger.info(
            "Allowlist entry revoked",
            extra={"entry_id": entry_id, "revoked_by": revoked_by},
        )
        revoked = await AllowlistRepository.get_by_id(entry_id)
        if revoked is None:
            raise NotFound(f"Allowlist entry not found: {entry_id}")
        return revoked

    @staticmethod
    async def find_active(platform: str, platform_user_id: str) -> AllowlistRead | None:
        return await AllowlistRepository.find_active(platform.strip().lower(), platform_user_id)

    @staticmethod
    async def list_entries(include_revoked: bool = False) -> list[AllowlistRead]:
        return await AllowlistRepository.list_entries(include_revoked=include_revoked)
