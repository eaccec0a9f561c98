"""Pairing state machine.

    PENDING --approve--> APPROVED --revoke--> REVOKED
    PENDING --revoke---> REVOKED

Nothing leaves REVOKED and nothing returns to PENDING. Every transition is a
compare-and-set on the observed status, so concurrent approve/revoke calls on
the same bot have exactly one winner; the loser re-reads the bot and fails with
``AlreadyApproved`` or ``AlreadyRevoked``.

Bearer tokens are issued only by ``_issue_token`` (used by ``approve`` and the
allowlist fast path of ``register``). The token hash, lookup digest and new
status are written in one UPDATE, so a token that was generated but not
persisted is never observable as approved.
"""

from datetime import timedelta

from email_validator import EmailNotValidError, validate_email
from loguru import logger

from wrbt_api.common.datetime_utils import utcnow
from wrbt_api.common.errors import (
    AlreadyApproved,
    AlreadyRevoked,
    Conflict,
    Expired,
    InternalError,
    NotFound,
    ValidationError,
)
from wrbt_api.common.utils import token_prefix
from wrbt_api.config.settings import AppSettings
from wrbt_api.db_sqlite.bots.models import BotStatus, BotTier
from wrbt_api.db_sqlite.bots.repository import BotRepository
from wrbt_api.db_sqlite.bots.schemas import BotInDB, BotRead
from wrbt_api.features.allowlist.service import AllowlistService
from wrbt_api.features.pairing.schemas import (
    ApprovalResponse,
    PairingStatusResponse,
    RegisterResponse,
    RevocationResponse,
)
from wrbt_api.features.tokens.codec import (
    compute_expiry,
    generate_api_key,
    generate_pairing_code,
    is_expired,
    token_lookup_key,
)
from wrbt_api.features.tokens.hashing import (
    HashingPolicy,
    build_hashing_policy,
    get_hashing_policy,
)

MIN_NAME_LENGTH = 3
MAX_CODE_ATTEMPTS = 5


def status_url(code: str) -> str:
    return f"/api/bots/status/{code}"


def _raise_for_terminal_state(bot: BotInDB) -> None:
    if bot.status == BotStatus.APPROVED:
        raise AlreadyApproved("Bot is already approved", bot_id=bot.id)
    if bot.status == BotStatus.REVOKED:
        raise AlreadyRevoked("Bot is already revoked", bot_id=bot.id)


class PairingService:
    """Register, CheckStatus, Approve and Revoke operations."""

    def __init__(
        self,
        hashing_policy: HashingPolicy,
        pairing_code_length: int = 8,
        pairing_ttl: timedelta = timedelta(hours=1),
    ):
        self.hashing_policy = hashing_policy
        self.pairing_code_length = pairing_code_length
        self.pairing_ttl = pairing_ttl

    @classmethod
    def from_settings(
        cls, app_settings: AppSettings, hashing_policy: HashingPolicy | None = None
    ) -> "PairingService":
        return cls(
            hashing_policy=hashing_policy or build_hashing_policy(app_settings),
            pairing_code_length=app_settings.tokens.pairing_code_length,
            pairing_ttl=timedelta(seconds=app_settings.tokens.pairing_code_ttl_seconds),
        )

    async def register(
        self,
        name: str,
        contact_email: str | None = None,
        user_agent: str | None = None,
        client_ip: str | None = None,
        platform: str | None = None,
        platform_user_id: str | None = None,
    ) -> RegisterResponse:
        """Create a pending READ_ONLY bot with a fresh pairing code.

        Never returns a bearer token, except when ``platform`` and
        ``platform_user_id`` match an active allowlist entry: the bot is then
        approved at once and the token is returned in this response only.

        Raises:
            ValidationError: Name shorter than 3 characters or malformed e-mail
        """
        name = (name or "").strip()
        if len(name) < MIN_NAME_LENGTH:
            raise ValidationError(f"name must be at least {MIN_NAME_LENGTH} characters")

        if contact_email:
            try:
                contact_email = validate_email(contact_email, check_deliverability=False).normalized
            except EmailNotValidError as e:
                raise ValidationError(f"contact_email: {e}") from e

        metadata: dict[str, str] = {}
        if client_ip:
            metadata["registered_from_ip"] = client_ip
        if platform and platform_user_id:
            metadata["platform"] = platform.strip().lower()
            metadata["platform_user_id"] = platform_user_id

        bot = await self._create_with_unique_code(name, contact_email, user_agent, metadata)
        logger.info(
            "Bot registered",
            extra={"bot_id": bot.id, "bot_name": bot.name, "client_ip": client_ip},
        )

        response = RegisterResponse(
            bot_id=bot.id,
            pairing_code=bot.pairing_code,
            status_url=status_url(bot.pairing_code),
            expires_at=bot.pairing_expires_at,
            message="Registration received. Share the pairing code with an administrator "
            "and poll the status URL until approved.",
        )

        if platform and platform_user_id:
            entry = await AllowlistService.find_active(platform, platform_user_id)
            if entry is not None:
                approval = await self._issue_token(
                    bot, approved_by=f"allowlist:{entry.id}", tier=entry.tier
                )
                response.status = BotStatus.APPROVED
                response.tier = approval.tier
                response.token = approval.token
                response.message = (
                    "Pre-approved via allowlist. Store this token now; it will not be shown again."
                )

        return response

    async def _create_with_unique_code(
        self,
        name: str,
        contact_email: str | None,
        user_agent: str | None,
        metadata: dict[str, str],
    ) -> BotInDB:
        for attempt in range(1, MAX_CODE_ATTEMPTS + 1):
            code = generate_pairing_code(self.pairing_code_length)
            # Also avoid codes consumed by earlier approvals
            if await BotRepository.get_by_pairing_code(code) is not None:
                logger.debug(f"Pairing code collision (attempt {attempt}), regenerating")
                continue
            try:
                return await BotRepository.create(
                    name=name,
                    contact_email=contact_email,
                    user_agent=user_agent,
                    pairing_code=code,
                    pairing_expires_at=compute_expiry(self.pairing_ttl),
                    metadata=metadata,
                )
            except Conflict:
                logger.debug(f"Pairing code collision on insert (attempt {attempt}), regenerating")

        logger.error(f"Could not allocate a unique pairing code after {MAX_CODE_ATTEMPTS} attempts")
        raise InternalError("Could not allocate a pairing code, retry later")

    async def check_status(self, code: str) -> PairingStatusResponse:
        """Report the state of the bot holding ``code``. Never emits a token.

        Raises:
            NotFound: No bot holds this code
            Expired: The code expired while the bot was still pending
        """
        bot = await BotRepository.get_by_pairing_code(code.strip().upper())
        if bot is None:
            raise NotFound("Pairing code not found")

        if bot.status == BotStatus.PENDING:
            if is_expired(bot.pairing_expires_at):
                raise Expired("Pairing code has expired, register again")
            return PairingStatusResponse(
                status=BotStatus.PENDING,
                bot_id=bot.id,
                expires_at=bot.pairing_expires_at,
                message="Waiting for administrator approval",
            )

        if bot.status == BotStatus.APPROVED:
            return PairingStatusResponse(
                status=BotStatus.APPROVED,
                bot_id=bot.id,
                tier=bot.tier,
                approved_at=bot.approved_at,
                token_collected=True,
                message="Approved. The token was issued at approval and cannot be shown again.",
            )

        return PairingStatusResponse(
            status=BotStatus.REVOKED,
            bot_id=bot.id,
            revoked_at=bot.revoked_at,
            revoked_reason=bot.revoked_reason,
            message="Registration has been revoked",
        )

    async def approve(self, bot_id: str, approved_by: str) -> ApprovalResponse:
        """Approve a pending bot and issue its bearer token (returned once).

        Approval by id is allowed even after the pairing code expired; the
        code only gates the bot's own status polling.

        Raises:
            NotFound: Unknown bot id
            AlreadyApproved: Bot is already approved
            AlreadyRevoked: Bot was revoked
        """
        bot = await BotRepository.get_by_id(bot_id)
        if bot is None:
            raise NotFound(f"Bot not found: {bot_id}")
        _raise_for_terminal_state(bot)

        return await self._issue_token(bot, approved_by=approved_by)

    async def _issue_token(
        self,
        bot: BotInDB,
        *,
        approved_by: str,
        tier: BotTier | None = None,
    ) -> ApprovalResponse:
        token = generate_api_key()
        token_hash = await self.hashing_policy.hash_secret(token)
        approved_at = utcnow()
        new_tier = tier or bot.tier

        lookup = token_lookup_key(token)
        try:
            won = await BotRepository.transition(
                bot.id,
                expected=BotStatus.PENDING,
                values={
                    "status": BotStatus.APPROVED,
                    "tier": new_tier,
                    "token_hash": token_hash,
                    "token_lookup": lookup,
                    "consumed_pairing_code": bot.pairing_code,
                    "pairing_code": None,
                    "pairing_expires_at": None,
                    "approved_at": approved_at,
                    "approved_by": approved_by,
                },
            )
        except InternalError:
            # The commit may land after the timeout fired; the stored lookup
            # tells whether this call's token is the one that was written.
            if not await self._token_was_stored(bot.id, lookup):
                raise
            logger.warning("Approval committed after storage error", extra={"bot_id": bot.id})
            won = True
        if not won:
            await self._raise_lost_transition(bot.id)

        logger.info(
            "Bot approved",
            extra={
                "bot_id": bot.id,
                "bot_name": bot.name,
                "approved_by": approved_by,
                "tier": new_tier,
                "token_prefix": token_prefix(token),
            },
        )
        return ApprovalResponse(
            bot_id=bot.id,
            tier=new_tier,
            token=token,
            approved_at=approved_at,
            approved_by=approved_by,
        )

    async def revoke(
        self, bot_id: str, reason: str | None = None, revoked_by: str | None = None
    ) -> RevocationResponse:
        """Revoke a pending or approved bot. Its token is invalid from now on.

        Raises:
            NotFound: Unknown bot id
            AlreadyRevoked: Bot was already revoked
            AlreadyApproved: A concurrent approval won against a pending revoke
        """
        bot = await BotRepository.get_by_id(bot_id)
        if bot is None:
            raise NotFound(f"Bot not found: {bot_id}")
        if bot.status == BotStatus.REVOKED:
            raise AlreadyRevoked("Bot is already revoked", bot_id=bot.id)

        revoked_at = utcnow()
        won = await BotRepository.transition(
            bot.id,
            expected=bot.status,
            values={
                "status": BotStatus.REVOKED,
                "token_hash": None,
                "revoked_at": revoked_at,
                "revoked_reason": reason,
            },
        )
        if not won:
            await self._raise_lost_transition(bot.id)

        logger.info(
            "Bot revoked",
            extra={
                "bot_id": bot.id,
                "bot_name": bot.name,
                "previous_status": bot.status,
                "revoked_by": revoked_by,
                "reason": reason,
            },
        )
        return RevocationResponse(bot_id=bot.id, revoked_at=revoked_at, revoked_reason=reason)

    @staticmethod
    async def _raise_lost_transition(bot_id: str) -> None:
        current = await BotRepository.get_by_id(bot_id)
        if current is None:
            raise NotFound(f"Bot not found: {bot_id}")
        logger.warning(
            "Lost concurrent state transition",
            extra={"bot_id": bot_id, "current_status": current.status},
        )
        _raise_for_terminal_state(current)
        raise Conflict("Bot state changed concurrently, retry", bot_id=bot_id)

    @staticmethod
    async def _token_was_stored(bot_id: str, lookup: str) -> bool:
        current = await BotRepository.get_by_id(bot_id)
        return (
            current is not None
            and current.status == BotStatus.APPROVED
            and current.token_lookup == lookup
        )

    @staticmethod
    async def list_bots(status: BotStatus | None = None) -> list[BotRead]:
        return [BotRead.model_validate(bot.model_dump()) for bot in await BotRepository.list_bots(status)]

    @staticmethod
    async def get_bot(bot_id: str) -> BotRead:
        bot = await BotRepository.get_by_id(bot_id)
        if bot is None:
            raise NotFound(f"Bot not found: {bot_id}")
        return BotRead.model_validate(bot.model_dump())


# Global service (set during startup, replaceable in tests)
_pairing_service: PairingService | None = None


def get_pairing_service() -> PairingService:
    global _pairing_service
    if _pairing_service is None:
        from wrbt_api.config.settings import settings

        _pairing_service = PairingService.from_settings(settings, get_hashing_policy())
    return _pairing_service


def set_pairing_service(service: PairingService | None) -> None:
    global _pairing_service
    _pairing_service = service
