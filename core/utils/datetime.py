"""Datetime utilities for common operations."""

from datetime import datetime, date, timezone
from typing import Optional


def now() -> datetime:
    """Get current datetime in UTC."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime) -> datetime:
    """
    Normalize a datetime to an aware UTC instant.

    Naive datetimes are taken to already be in UTC.

    Args:
        dt: Datetime to normalize

    Returns:
        Timezone-aware datetime in UTC
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def hours_between(start: datetime, end: datetime) -> float:
    """
    Calculate number of hours between two datetimes.

    Args:
        start: Start datetime
        end: End datetime

    Returns:
        Number of hours (can be fractional)
    """
    delta = ensure_utc(end) - ensure_utc(start)
    return delta.total_seconds() / 3600


def day_key(dt: datetime | date) -> str:
    """Calendar day (UTC) of an instant as YYYY-MM-DD."""
    if isinstance(dt, datetime):
        dt = ensure_utc(dt).date()
    return dt.isoformat()


def isoformat_or_none(dt: Optional[datetime]) -> Optional[str]:
    """Format datetime as ISO 8601 UTC, passing None through."""
    if dt is None:
        return None
    return ensure_utc(dt).isoformat()
