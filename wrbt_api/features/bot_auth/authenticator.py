"""Bearer token verification against the bot registry.

Decision order:
1. Missing header, non-Bearer scheme or malformed token -> Unauthorized.
   No lookup is performed.
2. Indexed lookup by the token's SHA-256 digest.
3. No match, or a stored hash that does not verify -> Forbidden(invalid).
4. Match but not approved -> Forbidden(revoked | pending).
5. Approved -> BotRequestContext.
"""

from loguru import logger

from wrbt_api.common.errors import Forbidden, Unauthorized
from wrbt_api.common.utils import token_prefix
from wrbt_api.db_sqlite.bots.models import BotStatus
from wrbt_api.db_sqlite.bots.repository import BotRepository
from wrbt_api.features.bot_auth.context import BotRequestContext
from wrbt_api.features.tokens.codec import is_well_formed_api_key, token_lookup_key
from wrbt_api.features.tokens.hashing import HashingPolicy, get_hashing_policy


def parse_bearer_token(authorization: str | None) -> str:
    """Extract the token from an ``Authorization: Bearer <token>`` header.

    Raises:
        Unauthorized: Header missing, wrong scheme, or token not ``wrbt_`` shaped
    """
    if not authorization:
        raise Unauthorized("Missing bearer token")

    scheme, _, token = authorization.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token:
        raise Unauthorized("Authorization header must be 'Bearer <token>'")
    if not is_well_formed_api_key(token):
        raise Unauthorized("Malformed bearer token")
    return token


class RequestAuthenticator:
    """Resolves a bearer token to an approved bot. Read-only."""

    def __init__(self, hashing_policy: HashingPolicy):
        self.hashing_policy = hashing_policy

    async def authenticate(self, authorization: str | None) -> BotRequestContext:
        token = parse_bearer_token(authorization)

        bot = await BotRepository.get_by_token_lookup(token_lookup_key(token))
        if bot is None:
            logger.info(f"Unknown bot token: {token_prefix(token)}")
            raise Forbidden("Invalid bot token", reason="invalid")

        if bot.status == BotStatus.REVOKED:
            raise Forbidden(
                "Bot access has been revoked",
                reason="revoked",
                bot_id=bot.id,
                code="BOT_NOT_APPROVED",
            )
        # Approval writes the lookup digest, so a pending match only occurs
        # if a row was seeded or restored out of band
        if bot.status != BotStatus.APPROVED:
            raise Forbidden(
                "Bot is pending approval",
                reason="pending",
                bot_id=bot.id,
                code="BOT_NOT_APPROVED",
            )

        if not bot.token_hash or not await self.hashing_policy.verify_secret(token, bot.token_hash):
            logger.warning(
                "Bot token failed hash verification",
                extra={"bot_id": bot.id, "token_prefix": token_prefix(token)},
            )
            raise Forbidden("Invalid bot token", reason="invalid")

        return BotRequestContext(bot_id=bot.id, name=bot.name, tier=bot.tier)


# Global authenticator (set during startup, replaceable in tests)
_authenticator: RequestAuthenticator | None = None


def get_request_authenticator() -> RequestAuthenticator:
    global _authenticator
    if _authenticator is None:
        _authenticator = RequestAuthenticator(get_hashing_policy())
    return _authenticator


def set_request_authenticator(authenticator: RequestAuthenticator | None) -> None:
    global _authenticator
    _authenticator = authenticator
