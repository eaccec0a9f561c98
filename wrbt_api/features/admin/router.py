"""Admin endpoints for bot approval and allowlist management.

All routes require ``X-Admin-Key``.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, Query
from loguru import logger

from wrbt_api.common.responses import ErrorResponse
from wrbt_api.db_sqlite.allowlist.schemas import (
    AllowlistCreate,
    AllowlistListResponse,
    AllowlistRead,
    AllowlistRevokeRequest,
)
from wrbt_api.db_sqlite.bot_requests.schemas import BotRequestPage
from wrbt_api.db_sqlite.bots.models import BotStatus
from wrbt_api.db_sqlite.bots.schemas import BotListResponse
from wrbt_api.features.admin.dependencies import AdminIdentity, verify_admin
from wrbt_api.features.admin.schemas import BotDetailResponse
from wrbt_api.features.allowlist.service import AllowlistService
from wrbt_api.features.audit.audit_log import AuditLog
from wrbt_api.features.pairing.schemas import (
    ApprovalResponse,
    RevocationResponse,
    RevokeRequest,
)
from wrbt_api.features.pairing.service import PairingService, get_pairing_service

RECENT_REQUESTS_LIMIT = 20

router = APIRouter(
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(verify_admin)],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)

PairingServiceDep = Annotated[PairingService, Depends(get_pairing_service)]


@router.get("/bots", response_model=BotListResponse)
async def list_bots(
    service: PairingServiceDep,
    status: Annotated[BotStatus | None, Query(description="Filter by status")] = None,
) -> BotListResponse:
    """List registered bots, newest first."""
    bots = await service.list_bots(status)
    return BotListResponse(bots=bots, total=len(bots))


@router.get(
    "/bots/{bot_id}",
    response_model=BotDetailResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_bot(bot_id: str, service: PairingServiceDep) -> BotDetailResponse:
    """Get a bot with its most recent requests."""
    bot = await service.get_bot(bot_id)
    page = await AuditLog.query(bot_id, limit=RECENT_REQUESTS_LIMIT)
    return BotDetailResponse(bot=bot, recent_requests=page.requests)


@router.post(
    "/bots/{bot_id}/approve",
    response_model=ApprovalResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def approve_bot(
    bot_id: str, admin: AdminIdentity, service: PairingServiceDep
) -> ApprovalResponse:
    """Approve a pending bot. The response carries the bearer token exactly once."""
    logger.info("Approve requested", extra={"bot_id": bot_id, "admin": admin})
    return await service.approve(bot_id, approved_by=admin)


@router.post(
    "/bots/{bot_id}/revoke",
    response_model=RevocationResponse,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def revoke_bot(
    bot_id: str,
    admin: AdminIdentity,
    service: PairingServiceDep,
    body: RevokeRequest | None = None,
) -> RevocationResponse:
    """Revoke a pending or approved bot."""
    reason = body.reason if body else None
    return await service.revoke(bot_id, reason=reason, revoked_by=admin)


@router.get(
    "/bots/{bot_id}/requests",
    response_model=BotRequestPage,
    responses={404: {"model": ErrorResponse}},
)
async def list_bot_requests(
    bot_id: str,
    service: PairingServiceDep,
    limit: Annotated[int, Query()] = 50,
    offset: Annotated[int, Query()] = 0,
) -> BotRequestPage:
    """Audited requests for a bot, newest first (limit clamped to 1..100)."""
    await service.get_bot(bot_id)
    return await AuditLog.query(bot_id, limit=limit, offset=offset)


@router.get("/allowlist", response_model=AllowlistListResponse)
async def list_allowlist(
    include_revoked: Annotated[bool, Query()] = False,
) -> AllowlistListResponse:
    entries = await AllowlistService.list_entries(include_revoked=include_revoked)
    return AllowlistListResponse(entries=entries, total=len(entries))


@router.post(
    "/allowlist",
    response_model=AllowlistRead,
    status_code=201,
    responses={409: {"model": ErrorResponse}},
)
async def add_allowlist_entry(data: AllowlistCreate, admin: AdminIdentity) -> AllowlistRead:
    """Pre-approve a platform identity."""
    return await AllowlistService.add(data, added_by=admin)


@router.post(
    "/allowlist/{entry_id}/revoke",
    response_model=AllowlistRead,
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def revoke_allowlist_entry(
    entry_id: str,
    admin: AdminIdentity,
    body: AllowlistRevokeRequest | None = None,
) -> AllowlistRead:
    return await AllowlistService.revoke(
        entry_id, revoked_by=admin, reason=body.reason if body else None
    )
