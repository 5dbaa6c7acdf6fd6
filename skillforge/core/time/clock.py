"""
Clock helpers.

Rules:
1. Internal time is always UTC
2. Do not call datetime.now() or datetime.utcnow() directly
3. Catalog columns store epoch milliseconds, payloads carry ISO 8601 with Z
"""

from datetime import datetime, timezone
from typing import Optional


def utc_now() -> datetime:
    """
    Current UTC time (timezone-aware).

    Example:
        >>> now = utc_now()
        >>> now.tzname()
        'UTC'
    """
    return datetime.now(timezone.utc)


def utc_now_ms() -> int:
    """
    Current UTC time as epoch milliseconds.

    Example:
        >>> ts = utc_now_ms()
        >>> type(ts)
        <class 'int'>
    """
    return int(utc_now().timestamp() * 1000)


def utc_now_iso() -> str:
    """
    Current UTC time as ISO 8601 with Z suffix.

    Example:
        >>> utc_now_iso()
        '2026-01-31T12:34:56.789012Z'
    """
    return iso_z(utc_now())


def from_epoch_ms(ms: int) -> datetime:
    """
    Convert epoch milliseconds to an aware UTC datetime.

    Example:
        >>> from_epoch_ms(1769860800000).year
        2026
    """
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc)


def iso_z(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime as ISO 8601 UTC with Z suffix, or None.

    Naive datetimes are declared UTC, aware ones are converted.

    Example:
        >>> iso_z(datetime(2026, 1, 31, 12, 34, 56, 789012, tzinfo=timezone.utc))
        '2026-01-31T12:34:56.789012Z'
    """
    if dt is None:
        return None

    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    else:
        dt = dt.astimezone(timezone.utc)

    return dt.strftime('%Y-%m-%dT%H:%M:%S.%fZ')
