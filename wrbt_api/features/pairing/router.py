"""Public pairing endpoints used by bots before they hold a token."""

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from wrbt_api.common.responses import ErrorResponse
from wrbt_api.features.pairing.schemas import (
    PairingStatusResponse,
    RegisterRequest,
    RegisterResponse,
)
from wrbt_api.features.pairing.service import PairingService, get_pairing_service
from wrbt_api.features.rate_limit.limiter import (
    REGISTER_BUCKET,
    STATUS_BUCKET,
    client_ip,
    rate_limit,
)

router = APIRouter(prefix="/bots", tags=["pairing"])

PairingServiceDep = Annotated[PairingService, Depends(get_pairing_service)]


@router.post(
    "/register",
    response_model=RegisterResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(rate_limit(REGISTER_BUCKET))],
    responses={400: {"model": ErrorResponse}, 429: {"model": ErrorResponse}},
)
async def register_bot(
    body: RegisterRequest, request: Request, service: PairingServiceDep
) -> RegisterResponse:
    """Register a bot and receive a pairing code.

    An administrator approves the bot using the code; the bot polls the
    status URL meanwhile.
    """
    return await service.register(
        name=body.name,
        contact_email=body.contact_email,
        user_agent=body.user_agent or request.headers.get("user-agent"),
        client_ip=client_ip(request),
        platform=body.platform,
        platform_user_id=body.platform_user_id,
    )


@router.get(
    "/status/{code}",
    response_model=PairingStatusResponse,
    response_model_exclude_none=True,
    dependencies=[Depends(rate_limit(STATUS_BUCKET))],
    responses={
        404: {"model": ErrorResponse},
        410: {"model": ErrorResponse},
        429: {"model": ErrorResponse},
    },
)
async def check_status(code: str, service: PairingServiceDep) -> PairingStatusResponse:
    """Poll the pairing status. Never returns a token."""
    return await service.check_status(code)
