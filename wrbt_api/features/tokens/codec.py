"""Pairing codes, bearer tokens and expiry helpers.

All randomness comes from ``secrets``. Pairing codes are short, human-typeable
uppercase strings; bearer tokens are ``wrbt_`` followed by 32 lowercase hex
characters (16 random bytes).
"""

import hashlib
import re
import secrets
import string
from datetime import datetime, timedelta

from wrbt_api.common.datetime_utils import utcnow
from wrbt_api.common.errors import ValidationError

API_KEY_PREFIX = "wrbt_"
API_KEY_PATTERN = re.compile(r"^wrbt_[0-9a-f]{32}$")

PAIRING_CODE_ALPHABET = string.ascii_uppercase
PAIRING_CODE_MIN_LENGTH = 6
PAIRING_CODE_MAX_LENGTH = 8

DEFAULT_PAIRING_TTL = timedelta(hours=1)


def generate_pairing_code(length: int = 8) -> str:
    """Generate an uppercase A-Z pairing code.

    Raises:
        ValidationError: If length is outside [6, 8]
    """
    if not PAIRING_CODE_MIN_LENGTH <= length <= PAIRING_CODE_MAX_LENGTH:
        raise ValidationError(
            f"Pairing code length must be between {PAIRING_CODE_MIN_LENGTH} "
            f"and {PAIRING_CODE_MAX_LENGTH}, got {length}"
        )
    return "".join(secrets.choice(PAIRING_CODE_ALPHABET) for _ in range(length))


def generate_api_key() -> str:
    """Generate a bearer token: ``wrbt_`` + 32 lowercase hex characters."""
    return f"{API_KEY_PREFIX}{secrets.token_hex(16)}"


def is_well_formed_api_key(token: str | None) -> bool:
    return bool(token) and API_KEY_PATTERN.fullmatch(token) is not None


def token_lookup_key(token: str) -> str:
    """Deterministic non-secret index for a bearer token.

    Bearer tokens carry 128 bits of entropy, so the SHA-256 digest reveals
    nothing useful. Only the hashing policy output proves possession.
    """
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def compute_expiry(duration: timedelta = DEFAULT_PAIRING_TTL) -> datetime:
    return utcnow() + duration


def is_expired(expiry: datetime | None) -> bool:
    """True if the expiry is missing or not strictly in the future."""
    if expiry is None:
        return True
    return utcnow() >= expiry
