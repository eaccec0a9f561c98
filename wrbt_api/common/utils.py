"""Small shared helpers."""

import nanoid


def generate_id(size: int = 22) -> str:
    """Generate a URL-safe opaque identifier (nanoid alphabet)."""
    return nanoid.generate(size=size)


def token_prefix(token: str | None) -> str:
    """Return a log-safe prefix of a secret token.

    Only the first 8 characters are ever logged ("wrbt_" + 3 hex chars).
    """
    if not token:
        return "<none>"
    return f"{token[:8]}..." if len(token) > 8 else "***"
