"""Staleness checks for cached entries."""

from datetime import datetime, timezone
from typing import Optional, Union

from coursesync.utils import parse_iso, utc_now

Timestamp = Union[datetime, str]


def _as_datetime(value: Timestamp) -> datetime:
    if isinstance(value, str):
        return parse_iso(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def entry_age(stored_at: Timestamp, now: Optional[datetime] = None) -> float:
    """Seconds elapsed since an entry was stored.

    Args:
        stored_at: Write timestamp (datetime or ISO string)
        now: Reference time; current UTC time when None

    Returns:
        Age in seconds (negative if stored_at lies in the future)
    """
    now = now or utc_now()
    return (now - _as_datetime(stored_at)).total_seconds()


def is_expired(
    stored_at: Optional[Timestamp],
    max_age: Optional[float],
    now: Optional[datetime] = None,
) -> bool:
    """Check whether an entry is older than ``max_age``.

    Args:
        stored_at: Write timestamp, or None when nothing is stored
        max_age: Maximum age in seconds; None means never expire
        now: Reference time; current UTC time when None

    Returns:
        True when no timestamp exists or the entry is older than max_age
    """
    if stored_at is None:
        return True
    if max_age is None:
        return False
    return entry_age(stored_at, now) > max_age


def get_ttl_remaining(
    stored_at: Timestamp, ttl_seconds: Optional[float], now: Optional[datetime] = None
) -> Optional[int]:
    """Get remaining seconds until an entry goes stale.

    Args:
        stored_at: Write timestamp
        ttl_seconds: Time-to-live in seconds

    Returns:
        Seconds remaining (0 once expired), or None if never expires
    """
    if ttl_seconds is None:
        return None

    remaining = ttl_seconds - entry_age(stored_at, now)
    return max(0, int(remaining))
