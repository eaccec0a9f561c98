"""Token hashing policies.

The policy is chosen once at startup from ``WRBT_TOKEN_HASHING``. Settings
validation refuses ``plaintext`` outside development, so production always
stores bcrypt hashes.
"""

import asyncio
import hmac
from typing import Protocol

import bcrypt
from loguru import logger

from wrbt_api.config.settings import AppSettings


class HashingPolicy(Protocol):
    """Strategy for storing and verifying bearer tokens."""

    name: str

    async def hash_secret(self, secret: str) -> str: ...

    async def verify_secret(self, secret: str, stored: str) -> bool: ...


class BcryptHashingPolicy:
    """Salted, cost-tunable bcrypt hashing.

    bcrypt is CPU-bound, so both operations run in a worker thread to keep the
    event loop responsive.
    """

    name = "bcrypt"

    def __init__(self, rounds: int = 12):
        self.rounds = rounds

    def _hash(self, secret: str) -> str:
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(secret.encode("utf-8"), salt).decode("utf-8")

    @staticmethod
    def _verify(secret: str, stored: str) -> bool:
        try:
            return bcrypt.checkpw(secret.encode("utf-8"), stored.encode("utf-8"))
        except ValueError:
            # Stored value is not a bcrypt hash (e.g. written by another policy)
            logger.warning("Stored token hash is not a valid bcrypt hash")
            return False

    async def hash_secret(self, secret: str) -> str:
        return await asyncio.to_thread(self._hash, secret)

    async def verify_secret(self, secret: str, stored: str) -> bool:
        return await asyncio.to_thread(self._verify, secret, stored)


class PlaintextHashingPolicy:
    """Development-only policy: stores the secret as-is."""

    name = "plaintext"

    async def hash_secret(self, secret: str) -> str:
        return secret

    async def verify_secret(self, secret: str, stored: str) -> bool:
        return hmac.compare_digest(secret.encode("utf-8"), stored.encode("utf-8"))


def build_hashing_policy(app_settings: AppSettings) -> HashingPolicy:
    """Select the hashing policy configured for this deployment."""
    if app_settings.tokens.hashing_mode == "plaintext":
        logger.warning("Token hashing policy: plaintext (development only)")
        return PlaintextHashingPolicy()

    logger.info(f"Token hashing policy: bcrypt (rounds={app_settings.tokens.bcrypt_rounds})")
    return BcryptHashingPolicy(rounds=app_settings.tokens.bcrypt_rounds)


# Global policy (selected once at startup, replaceable in tests)
_hashing_policy: HashingPolicy | None = None


def get_hashing_policy() -> HashingPolicy:
    global _hashing_policy
    if _hashing_policy is None:
        from wrbt_api.config.settings import settings

        _hashing_policy = build_hashing_policy(settings)
    return _hashing_policy


def set_hashing_policy(policy: HashingPolicy | None) -> None:
    global _hashing_policy
    _hashing_policy = policy
