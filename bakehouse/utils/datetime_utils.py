"""Datetime utilities for timezone-aware UTC timestamps.

SQLite hands back naive datetimes for values that were written as aware
UTC datetimes, so any comparison done in Python goes through ``as_utc()``.

Usage:
    from bakehouse.utils.datetime_utils import utc_now, as_utc

    timestamp = utc_now()

    # For SQLAlchemy Column defaults
    created_at = Column(DateTime, default=utc_now)
"""

from datetime import datetime, timedelta, timezone
from typing import Optional


def utc_now() -> datetime:
    """Return current UTC time as timezone-aware datetime.

    Returns:
        Current UTC datetime with timezone info
    """
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize a datetime to timezone-aware UTC.

    Naive values are assumed to already be UTC (that is how they are stored).

    Args:
        value: Datetime to normalize, or None

    Returns:
        Aware UTC datetime, or None if value is None
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def days_from(start: datetime, days: float) -> datetime:
    """Return ``start`` shifted by a number of days, normalized to UTC."""
    return as_utc(start) + timedelta(days=days)


def days_ago(days: float, now: Optional[datetime] = None) -> datetime:
    """Return the UTC cutoff that lies ``days`` before ``now``."""
    return as_utc(now or utc_now()) - timedelta(days=days)
