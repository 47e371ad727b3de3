"""Timezone helpers.

All timestamps are handled as aware UTC datetimes. Some database drivers
(SQLite) hand back naive values for ``DateTime(timezone=True)`` columns;
``as_utc`` normalises those before any Python-side comparison.
"""

from datetime import UTC, datetime


def utcnow() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(UTC)


def as_utc(value: datetime) -> datetime:
    """Attach UTC to naive datetimes and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def from_timestamp(value: float) -> datetime:
    """Convert a Unix timestamp (JWT NumericDate) to an aware UTC datetime."""
    return datetime.fromtimestamp(value, tz=UTC)
