"""End-to-end HTTP flows: register, poll, approve, call protected endpoints, revoke."""

from unittest.mock import AsyncMock, patch

import pytest

from wrbt_api.common.errors import InternalError
from wrbt_api.features.audit.audit_log import AuditLog
from wrbt_api.features.tokens.codec import generate_api_key

pytestmark = pytest.mark.integration


def bearer(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


class TestPairingFlow:
    async def test_full_lifecycle(self, client, admin_headers):
        registered = await client.post(
            "/api/bots/register",
            json={"name": "DocsCrawler", "contact_email": "ops@example.com"},
            headers={"User-Agent": "DocsCrawler/1.2"},
        )
        assert registered.status_code == 201
        registration = registered.json()
        assert "token" not in registration
        assert registration["status_url"] == f"/api/bots/status/{registration['pairing_code']}"
        assert registration["expires_at"].endswith("Z")

        pending = await client.get(registration["status_url"])
        assert pending.status_code == 200
        assert pending.json()["status"] == "pending"

        approved = await client.post(
            f"/api/admin/bots/{registration['bot_id']}/approve", headers=admin_headers
        )
        token = approved.json()["token"]

        status = await client.get(registration["status_url"])
        assert status.json()["status"] == "approved"
        assert status.json()["token_collected"] is True
        assert token not in status.text

        whoami = await client.get("/api/bot/whoami", headers=bearer(token))
        assert whoami.status_code == 200
        assert whoami.json() == {
            "bot_id": registration["bot_id"],
            "name": "DocsCrawler",
            "tier": "READ_ONLY",
        }

        await client.post(
            f"/api/admin/bots/{registration['bot_id']}/revoke",
            json={"reason": "abuse"},
            headers=admin_headers,
        )

        denied = await client.get("/api/bot/whoami", headers=bearer(token))
        assert denied.status_code == 403
        assert denied.json()["code"] == "BOT_NOT_APPROVED"
        assert denied.json()["reason"] == "revoked"

        status = await client.get(registration["status_url"])
        assert status.json()["status"] == "revoked"
        assert status.json()["revoked_reason"] == "abuse"

    async def test_allowlist_fast_path_over_http(self, client, admin_headers):
        await client.post(
            "/api/admin/allowlist",
            json={"platform": "discord", "platform_user_id": "42", "tier": "WRITE_LIMITED"},
            headers=admin_headers,
        )

        registered = await client.post(
            "/api/bots/register",
            json={"name": "TrustedBot", "platform": "discord", "platform_user_id": "42"},
        )

        body = registered.json()
        assert body["status"] == "approved"
        assert body["tier"] == "WRITE_LIMITED"

        ingest = await client.post(
            "/api/bot/ingest",
            json={"source": "docs-sync", "payload": {"pages": 3}},
            headers=bearer(body["token"]),
        )
        assert ingest.status_code == 202
        assert ingest.json()["accepted"] is True

    async def test_validation_errors_use_envelope(self, client):
        response = await client.post("/api/bots/register", json={"name": "ab"})

        assert response.status_code == 400
        assert response.json()["code"] == "VALIDATION_ERROR"
        assert "name" in response.json()["error"]

        response = await client.post(
            "/api/bots/register", json={"name": "GoodName", "contact_email": "nope"}
        )
        assert response.status_code == 400

    async def test_unknown_pairing_code(self, client):
        response = await client.get("/api/bots/status/ABCDEFGH")

        assert response.status_code == 404
        assert response.json() == {"error": "Pairing code not found", "code": "NOT_FOUND"}


class TestRateLimiting:
    async def test_register_is_limited_per_ip(self, client):
        responses = [
            await client.post("/api/bots/register", json={"name": f"Bot{i:03d}"}) for i in range(4)
        ]

        assert [r.status_code for r in responses] == [201, 201, 201, 429]
        assert responses[0].headers["X-RateLimit-Limit"] == "3"
        assert responses[2].headers["X-RateLimit-Remaining"] == "0"
        assert int(responses[3].headers["Retry-After"]) > 0
        assert responses[3].json()["code"] == "RATE_LIMIT_EXCEEDED"

    async def test_forwarded_for_separates_clients(self, client):
        for i in range(3):
            await client.post("/api/bots/register", json={"name": f"Bot{i:03d}"})

        response = await client.post(
            "/api/bots/register",
            json={"name": "OtherClient"},
            headers={"X-Forwarded-For": "198.51.100.1"},
        )
        assert response.status_code == 201


class TestProtectedEndpoints:
    async def test_missing_token_is_401_and_not_audited(self, client):
        response = await client.get("/api/bot/whoami")

        assert response.status_code == 401
        assert response.json()["code"] == "BOT_AUTH_REQUIRED"
        assert (await AuditLog.query(None)).requests == []

    async def test_unknown_token_is_403_and_audited_without_identity(self, client):
        response = await client.get("/api/bot/whoami", headers=bearer(generate_api_key()))

        assert response.status_code == 403
        assert response.json()["reason"] == "invalid"
        records = (await AuditLog.query(None)).requests
        assert len(records) == 1
        assert records[0].status_code == 403
        assert records[0].endpoint == "/api/bot/whoami"

    async def test_success_is_audited_once(self, client, approved_bot):
        response = await client.get(
            "/api/bot/whoami",
            headers={**bearer(approved_bot.token), "User-Agent": "FixtureBot/1.0"},
        )

        assert response.status_code == 200
        records = (await AuditLog.query(approved_bot.bot_id)).requests
        assert len(records) == 1
        assert records[0].status_code == 200
        assert records[0].method == "GET"
        assert records[0].user_agent == "FixtureBot/1.0"
        assert records[0].response_time_ms is not None

    async def test_insufficient_tier(self, client, approved_bot):
        response = await client.post(
            "/api/bot/ingest",
            json={"source": "docs-sync"},
            headers=bearer(approved_bot.token),
        )

        assert response.status_code == 403
        assert response.json()["code"] == "INSUFFICIENT_TIER"
        records = (await AuditLog.query(approved_bot.bot_id)).requests
        assert [r.status_code for r in records] == [403]

    async def test_audit_failure_does_not_break_request(self, client, approved_bot):
        with patch(
            "wrbt_api.features.audit.audit_log.BotRequestRepository.create",
            AsyncMock(side_effect=InternalError("audit store down")),
        ):
            response = await client.get("/api/bot/whoami", headers=bearer(approved_bot.token))

        assert response.status_code == 200

    async def test_registry_outage_is_retryable(self, client, approved_bot):
        with patch(
            "wrbt_api.features.bot_auth.authenticator.BotRepository.get_by_token_lookup",
            AsyncMock(side_effect=InternalError("Storage temporarily unavailable, retry later")),
        ):
            response = await client.get("/api/bot/whoami", headers=bearer(approved_bot.token))

        assert response.status_code == 503
        assert response.json()["code"] == "INTERNAL_ERROR"
        assert response.headers["Retry-After"] == "1"


class TestServiceEndpoints:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "ok"

    async def test_readiness(self, client):
        response = await client.get("/readyz")
        assert response.status_code == 200
        assert response.json()["status"] == "ready"

    async def test_config(self, client):
        body = (await client.get("/api/config")).json()

        assert body["token_prefix"] == "wrbt_"
        assert body["pairing_code_length"] == 8
        assert body["rate_limits"]["register"]["max_requests"] == 3
        assert body["bot_protected_prefixes"] == ["/api/bot"]
