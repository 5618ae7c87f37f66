"""
Datetime utilities.

Provides timezone-aware datetime functions.
"""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """
    Get current UTC datetime with timezone info.

    Returns:
        Current datetime in UTC with timezone awareness
    """
    return datetime.now(UTC)


def ensure_utc(value: datetime | None) -> datetime | None:
    """
    Attach UTC to a naive datetime read back from the database.

    SQLite drops tzinfo on DateTime(timezone=True) columns; values are
    always written as UTC, so a naive value is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def month_start(now: datetime | None = None) -> datetime:
    """Return midnight of the first day of the current UTC month."""
    now = ensure_utc(now) if now else utc_now()
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
