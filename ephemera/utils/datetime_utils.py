"""
Centralized datetime utilities.

All timestamps are stored and transmitted as UTC with explicit timezone
indicators. SQLite (used by the test suite) hands back naive datetimes, so
every comparison goes through ensure_utc first.
"""

from datetime import datetime, timezone


def utc_now() -> datetime:
    """
    Get current UTC time as timezone-aware datetime.

    Use this instead of datetime.utcnow() to ensure timezone awareness.
    """
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """
    Ensure datetime is UTC timezone-aware.

    Converts naive datetime (assumed to be UTC) to timezone-aware UTC.
    If datetime is already timezone-aware, converts to UTC.

    Example:
        >>> ensure_utc(datetime(2025, 12, 16, 11, 30)).tzinfo
        datetime.timezone.utc
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)

    return dt.astimezone(timezone.utc)


def to_iso_utc(dt: datetime | None) -> str | None:
    """
    Convert datetime to ISO format with 'Z' suffix (UTC indicator).

    Returns:
        ISO 8601 string such as "2025-12-16T11:30:00.123456Z", or None

    Example:
        >>> to_iso_utc(datetime(2025, 12, 16, 11, 30, 0, 123456, tzinfo=timezone.utc))
        '2025-12-16T11:30:00.123456Z'
    """
    if dt is None:
        return None

    return ensure_utc(dt).isoformat().replace('+00:00', 'Z')


def is_past(dt: datetime | None, now: datetime | None = None) -> bool:
    """True when dt is set and lies at or before now (used for room expiry)."""
    if dt is None:
        return False
    return ensure_utc(dt) <= ensure_utc(now or utc_now())
