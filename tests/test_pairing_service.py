"""Tests for the pairing state machine (register, status, approve, revoke)."""

import asyncio
import re
from datetime import timedelta

import pytest

from wrbt_api.common.errors import (
    AlreadyApproved,
    AlreadyRevoked,
    Expired,
    InternalError,
    NotFound,
    ValidationError,
)
from wrbt_api.db_sqlite.allowlist.schemas import AllowlistCreate
from wrbt_api.db_sqlite.bots.models import BotStatus, BotTier
from wrbt_api.db_sqlite.bots.repository import BotRepository
from wrbt_api.features.allowlist.service import AllowlistService
from wrbt_api.features.pairing.service import PairingService
from wrbt_api.features.tokens.codec import token_lookup_key
from wrbt_api.features.tokens.hashing import PlaintextHashingPolicy

pytestmark = pytest.mark.integration


class TestRegister:
    async def test_creates_pending_read_only_bot(self, pairing_service):
        result = await pairing_service.register(
            name="  DocsCrawler  ",
            contact_email="ops@example.com",
            user_agent="DocsCrawler/1.2",
            client_ip="203.0.113.7",
        )

        assert re.fullmatch(r"[A-Z]{8}", result.pairing_code)
        assert result.status == BotStatus.PENDING
        assert result.tier == BotTier.READ_ONLY
        assert result.token is None
        assert result.status_url == f"/api/bots/status/{result.pairing_code}"

        bot = await BotRepository.get_by_id(result.bot_id)
        assert bot.name == "DocsCrawler"
        assert bot.status == BotStatus.PENDING
        assert bot.token_hash is None
        assert bot.pairing_code == result.pairing_code
        assert bot.pairing_expires_at == result.expires_at
        assert bot.metadata["registered_from_ip"] == "203.0.113.7"

    @pytest.mark.parametrize("name", ["", "ab", "   ab   "])
    async def test_rejects_short_name(self, pairing_service, name):
        with pytest.raises(ValidationError, match="at least 3"):
            await pairing_service.register(name=name)

    async def test_rejects_malformed_email(self, pairing_service):
        with pytest.raises(ValidationError, match="contact_email"):
            await pairing_service.register(name="DocsCrawler", contact_email="not-an-email")

    async def test_custom_code_length(self):
        service = PairingService(PlaintextHashingPolicy(), pairing_code_length=6)
        result = await service.register(name="ShortCode")
        assert len(result.pairing_code) == 6


class TestCheckStatus:
    async def test_unknown_code(self, pairing_service):
        with pytest.raises(NotFound):
            await pairing_service.check_status("ZZZZZZZZ")

    async def test_pending(self, pairing_service):
        registration = await pairing_service.register(name="Poller")

        status = await pairing_service.check_status(registration.pairing_code.lower())

        assert status.status == BotStatus.PENDING
        assert status.bot_id == registration.bot_id
        assert status.expires_at == registration.expires_at

    async def test_expired_pending_code(self):
        service = PairingService(PlaintextHashingPolicy(), pairing_ttl=timedelta(seconds=-1))
        registration = await service.register(name="LateBot")

        with pytest.raises(Expired):
            await service.check_status(registration.pairing_code)

    async def test_approved_never_returns_token(self, pairing_service):
        registration = await pairing_service.register(name="Poller")
        await pairing_service.approve(registration.bot_id, approved_by="alice")

        for _ in range(2):
            status = await pairing_service.check_status(registration.pairing_code)
            assert status.status == BotStatus.APPROVED
            assert status.token_collected is True
            assert "token" not in status.model_dump()

    async def test_revoked(self, pairing_service):
        registration = await pairing_service.register(name="Poller")
        await pairing_service.revoke(registration.bot_id, reason="spam")

        status = await pairing_service.check_status(registration.pairing_code)

        assert status.status == BotStatus.REVOKED
        assert status.revoked_reason == "spam"
        assert status.revoked_at is not None


class TestApprove:
    async def test_issues_token_and_stores_only_hash_material(self, pairing_service):
        registration = await pairing_service.register(name="Approvable")

        approval = await pairing_service.approve(registration.bot_id, approved_by="alice")

        assert re.fullmatch(r"wrbt_[0-9a-f]{32}", approval.token)
        assert approval.approved_by == "alice"

        bot = await BotRepository.get_by_id(registration.bot_id)
        assert bot.status == BotStatus.APPROVED
        assert bot.token_lookup == token_lookup_key(approval.token)
        assert bot.token_hash is not None
        assert bot.pairing_code is None
        assert bot.pairing_expires_at is None
        assert bot.consumed_pairing_code == registration.pairing_code
        assert bot.approved_by == "alice"
        assert bot.approved_at is not None

    async def test_unknown_bot(self, pairing_service):
        with pytest.raises(NotFound):
            await pairing_service.approve("missing", approved_by="alice")

    async def test_twice_fails_with_already_approved(self, pairing_service, approved_bot):
        with pytest.raises(AlreadyApproved):
            await pairing_service.approve(approved_bot.bot_id, approved_by="alice")

    async def test_revoked_bot_cannot_be_approved(self, pairing_service):
        registration = await pairing_service.register(name="Revoked")
        await pairing_service.revoke(registration.bot_id)

        with pytest.raises(AlreadyRevoked):
            await pairing_service.approve(registration.bot_id, approved_by="alice")

    async def test_allowed_after_code_expiry(self):
        service = PairingService(PlaintextHashingPolicy(), pairing_ttl=timedelta(seconds=-1))
        registration = await service.register(name="SlowAdmin")

        approval = await service.approve(registration.bot_id, approved_by="alice")

        assert approval.status == BotStatus.APPROVED

    async def test_concurrent_approvals_have_one_winner(self, pairing_service):
        registration = await pairing_service.register(name="Racy")

        results = await asyncio.gather(
            pairing_service.approve(registration.bot_id, approved_by="alice"),
            pairing_service.approve(registration.bot_id, approved_by="bob"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], AlreadyApproved)

        bot = await BotRepository.get_by_id(registration.bot_id)
        assert bot.token_lookup == token_lookup_key(winners[0].token)
        assert bot.approved_by == winners[0].approved_by

    async def test_concurrent_approve_and_revoke_have_one_winner(self, pairing_service):
        registration = await pairing_service.register(name="Contested")

        results = await asyncio.gather(
            pairing_service.approve(registration.bot_id, approved_by="alice"),
            pairing_service.revoke(registration.bot_id, reason="changed mind"),
            return_exceptions=True,
        )

        winners = [r for r in results if not isinstance(r, Exception)]
        losers = [r for r in results if isinstance(r, Exception)]
        assert len(winners) == 1
        assert len(losers) == 1
        assert isinstance(losers[0], (AlreadyApproved, AlreadyRevoked))

        bot = await BotRepository.get_by_id(registration.bot_id)
        if isinstance(losers[0], AlreadyApproved):
            assert bot.status == BotStatus.APPROVED
            assert bot.token_lookup == token_lookup_key(winners[0].token)
        else:
            assert bot.status == BotStatus.REVOKED
            assert bot.token_hash is None

    async def test_commit_landing_after_storage_error_still_returns_token(
        self, pairing_service, monkeypatch
    ):
        registration = await pairing_service.register(name="SlowDisk")
        transition = BotRepository.transition

        async def commit_then_fail(*args, **kwargs):
            await transition(*args, **kwargs)
            raise InternalError("Storage temporarily unavailable, retry later")

        monkeypatch.setattr(BotRepository, "transition", staticmethod(commit_then_fail))

        approval = await pairing_service.approve(registration.bot_id, approved_by="alice")

        bot = await BotRepository.get_by_id(registration.bot_id)
        assert bot.status == BotStatus.APPROVED
        assert bot.token_lookup == token_lookup_key(approval.token)
        assert await pairing_service.hashing_policy.verify_secret(approval.token, bot.token_hash)

    async def test_storage_error_without_commit_leaves_bot_pending(
        self, pairing_service, monkeypatch
    ):
        registration = await pairing_service.register(name="DeadDisk")

        async def fail(*args, **kwargs):
            raise InternalError("Storage temporarily unavailable, retry later")

        monkeypatch.setattr(BotRepository, "transition", staticmethod(fail))

        with pytest.raises(InternalError):
            await pairing_service.approve(registration.bot_id, approved_by="alice")

        monkeypatch.undo()
        bot = await BotRepository.get_by_id(registration.bot_id)
        assert bot.status == BotStatus.PENDING
        assert bot.token_lookup is None

        approval = await pairing_service.approve(registration.bot_id, approved_by="alice")
        assert approval.status == BotStatus.APPROVED


class TestRevoke:
    async def test_revoke_approved_clears_token_hash(self, pairing_service, approved_bot):
        result = await pairing_service.revoke(
            approved_bot.bot_id, reason="abuse", revoked_by="alice"
        )

        assert result.status == BotStatus.REVOKED
        bot = await BotRepository.get_by_id(approved_bot.bot_id)
        assert bot.status == BotStatus.REVOKED
        assert bot.token_hash is None
        assert bot.revoked_reason == "abuse"
        # Lookup digest is kept so the authenticator can report "revoked"
        assert bot.token_lookup == token_lookup_key(approved_bot.token)

    async def test_revoke_pending(self, pairing_service):
        registration = await pairing_service.register(name="NeverMind")

        await pairing_service.revoke(registration.bot_id)

        bot = await BotRepository.get_by_id(registration.bot_id)
        assert bot.status == BotStatus.REVOKED

    async def test_twice_fails_with_already_revoked(self, pairing_service, approved_bot):
        await pairing_service.revoke(approved_bot.bot_id)
        with pytest.raises(AlreadyRevoked):
            await pairing_service.revoke(approved_bot.bot_id)

    async def test_unknown_bot(self, pairing_service):
        with pytest.raises(NotFound):
            await pairing_service.revoke("missing")

    async def test_concurrent_revokes_have_one_winner(self, pairing_service, approved_bot):
        results = await asyncio.gather(
            pairing_service.revoke(approved_bot.bot_id, reason="a"),
            pairing_service.revoke(approved_bot.bot_id, reason="b"),
            return_exceptions=True,
        )

        assert sum(not isinstance(r, Exception) for r in results) == 1
        assert sum(isinstance(r, AlreadyRevoked) for r in results) == 1


class TestAllowlistFastPath:
    async def test_matching_entry_approves_immediately(self, pairing_service):
        entry = await AllowlistService.add(
            AllowlistCreate(platform="Discord", platform_user_id="42", tier=BotTier.WRITE_LIMITED),
            added_by="alice",
        )

        result = await pairing_service.register(
            name="TrustedBot", platform="discord", platform_user_id="42"
        )

        assert result.status == BotStatus.APPROVED
        assert result.tier == BotTier.WRITE_LIMITED
        assert result.token is not None

        bot = await BotRepository.get_by_id(result.bot_id)
        assert bot.approved_by == f"allowlist:{entry.id}"
        assert bot.token_lookup == token_lookup_key(result.token)

        status = await pairing_service.check_status(result.pairing_code)
        assert status.status == BotStatus.APPROVED
        assert status.token_collected is True

    async def test_no_match_stays_pending(self, pairing_service):
        result = await pairing_service.register(
            name="StrangerBot", platform="discord", platform_user_id="999"
        )

        assert result.status == BotStatus.PENDING
        assert result.token is None


class TestQueries:
    async def test_list_bots_filters_by_status(self, pairing_service, approved_bot):
        await pairing_service.register(name="StillPending")

        pending = await pairing_service.list_bots(BotStatus.PENDING)
        approved = await pairing_service.list_bots(BotStatus.APPROVED)
        everything = await pairing_service.list_bots()

        assert [b.name for b in pending] == ["StillPending"]
        assert [b.id for b in approved] == [approved_bot.bot_id]
        assert len(everything) == 2
        assert not hasattr(everything[0], "token_hash")

    async def test_get_bot_unknown(self, pairing_service):
        with pytest.raises(NotFound):
            await pairing_service.get_bot("missing")
