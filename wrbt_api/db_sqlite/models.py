"""Import every table so Base.metadata is complete before create_all()."""

from wrbt_api.db_sqlite.allowlist.models import AllowlistTable  # noqa: F401
from wrbt_api.db_sqlite.bot_requests.models import BotRequestTable  # noqa: F401
from wrbt_api.db_sqlite.bots.models import BotTable  # noqa: F401
