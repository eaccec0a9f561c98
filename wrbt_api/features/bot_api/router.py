"""Bot-facing endpoints. Mounted under a prefix guarded by BotAuthMiddleware."""

from typing import Annotated, Any

from fastapi import APIRouter, Depends
from loguru import logger
from pydantic import BaseModel, Field

from wrbt_api.common.datetime_utils import format_iso8601_utc, utcnow
from wrbt_api.common.responses import ErrorResponse
from wrbt_api.db_sqlite.bots.models import BotTier
from wrbt_api.features.bot_auth.context import BotRequestContext
from wrbt_api.features.bot_auth.dependencies import CurrentBot, require_tier

router = APIRouter(
    prefix="/bot",
    tags=["bot"],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)


class WhoAmIResponse(BaseModel):
    bot_id: str
    name: str
    tier: BotTier


class IngestRequest(BaseModel):
    source: str = Field(..., min_length=1, max_length=200, examples=["docs-sync"])
    payload: dict[str, Any] = Field(default_factory=dict)


class IngestResponse(BaseModel):
    accepted: bool = True
    bot_id: str
    received_at: str


@router.get("/whoami", response_model=WhoAmIResponse)
async def whoami(bot: CurrentBot) -> WhoAmIResponse:
    """Echo the authenticated bot identity (any tier)."""
    return WhoAmIResponse(bot_id=bot.bot_id, name=bot.name, tier=bot.tier)


@router.post("/ingest", response_model=IngestResponse, status_code=202)
async def ingest(
    body: IngestRequest,
    bot: Annotated[BotRequestContext, Depends(require_tier(BotTier.WRITE_LIMITED))],
) -> IngestResponse:
    """Accept a write from a WRITE_LIMITED bot.

    Content processing happens downstream; this endpoint only acknowledges.
    """
    logger.info(
        "Ingest accepted",
        extra={
            "bot_id": bot.bot_id,
            "bot_name": bot.name,
            "source": body.source,
            "keys": len(body.payload),
        },
    )
    return IngestResponse(bot_id=bot.bot_id, received_at=format_iso8601_utc(utcnow()))
