"""FastAPI dependencies for bot-authenticated routes."""

from typing import Annotated

from fastapi import Depends, Request

from wrbt_api.common.errors import Forbidden, Unauthorized
from wrbt_api.db_sqlite.bots.models import BotTier
from wrbt_api.features.bot_auth.context import BotRequestContext

TIER_RANK = {BotTier.READ_ONLY: 0, BotTier.WRITE_LIMITED: 1}


def get_current_bot(request: Request) -> BotRequestContext:
    """Return the bot resolved by ``BotAuthMiddleware``.

    Raises:
        Unauthorized: Route is not behind the middleware's protected prefixes
    """
    context = getattr(request.state, "bot", None)
    if context is None:
        raise Unauthorized("Bot authentication required")
    return context


CurrentBot = Annotated[BotRequestContext, Depends(get_current_bot)]


def require_tier(tier: BotTier):
    """Dependency factory: reject bots below ``tier`` with 403 INSUFFICIENT_TIER."""

    def dependency(bot: CurrentBot) -> BotRequestContext:
        if TIER_RANK[bot.tier] < TIER_RANK[tier]:
            raise Forbidden(
                f"This endpoint requires tier {tier}",
                reason="insufficient_tier",
                bot_id=bot.bot_id,
                code="INSUFFICIENT_TIER",
                required_tier=tier.value,
            )
        return bot

    return dependency
