"""Identity attached to an authenticated bot request."""

from dataclasses import dataclass

from wrbt_api.db_sqlite.bots.models import BotTier


@dataclass(frozen=True)
class BotRequestContext:
    """Resolved bot identity, stored on ``request.state.bot``.

    Handlers receive it through the ``CurrentBot`` dependency.
    """

    bot_id: str
    name: str
    tier: BotTier
