"""Admin endpoint schemas."""

from pydantic import BaseModel, Field

from wrbt_api.db_sqlite.bot_requests.schemas import BotRequestRead
from wrbt_api.db_sqlite.bots.schemas import BotRead


class BotDetailResponse(BaseModel):
    """Bot detail with its most recent audited requests."""

    bot: BotRead
    recent_requests: list[BotRequestRead] = Field(default_factory=list)
