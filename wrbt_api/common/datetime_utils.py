"""UTC datetime utilities for pairing expiry, approval stamps and audit timestamps.

This module provides:
1. A SQLAlchemy type that stores UTC timestamps as ISO 8601 text with 'Z'
2. `utcnow()` as the single clock for registry and audit code
3. Validation/formatting helpers used by the Pydantic schemas

Usage:
    from wrbt_api.common.datetime_utils import UTCDateTime, utcnow

    # In SQLAlchemy models:
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, default=utcnow)

    # In Python code:
    expires_at = utcnow() + timedelta(hours=1)
"""

from datetime import UTC, datetime

from sqlalchemy import String, TypeDecorator

_STORAGE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


class UTCDateTime(TypeDecorator):
    """SQLAlchemy type that enforces UTC timestamps.

    Storage:
        TEXT in ISO 8601 with microseconds and a 'Z' suffix
        (e.g., '2026-02-03T10:00:00.123456Z'). Fixed width, so lexical
        ordering in SQL matches chronological ordering.

    Python:
        Always returns timezone-aware datetime objects in UTC.
        Rejects naive datetimes on input.
    """

    impl = String
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect) -> str | None:
        """Convert Python datetime to database format.

        Raises:
            ValueError: If datetime is naive (no timezone)
        """
        if value is None:
            return None

        if value.tzinfo is None:
            raise ValueError(
                f"Naive datetime not allowed: {value}. "
                "Use utcnow() instead of datetime.now()."
            )

        return value.astimezone(UTC).strftime(_STORAGE_FORMAT)

    def process_result_value(self, value: str | None, dialect) -> datetime | None:
        """Convert database format to a timezone-aware UTC datetime."""
        if value is None:
            return None

        # Handle both 'Z' suffix and '+00:00' formats
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"

        return datetime.fromisoformat(value).astimezone(UTC)


def utcnow() -> datetime:
    """Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.now() or datetime.utcnow().
    """
    return datetime.now(UTC)


def validate_aware_datetime(dt: datetime) -> datetime:
    """Validate that datetime is timezone-aware.

    Raises:
        ValueError: If datetime is naive
    """
    if dt.tzinfo is None:
        raise ValueError(
            f"Naive datetime not allowed: {dt}. "
            "All datetimes must be timezone-aware (use utcnow())."
        )
    return dt


def format_iso8601_utc(dt: datetime) -> str:
    """Format datetime as ISO 8601 with 'Z' suffix (second precision).

    Example: '2026-02-03T11:00:00Z'
    """
    validate_aware_datetime(dt)
    return dt.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%SZ")
