"""
Time sources for eligibility-window checks.

Every "now" the workflow consults comes from a clock handed to the services
at construction, so tests can pin or advance time.
"""

from datetime import datetime, timedelta
from typing import Protocol

from core.utils.datetime import ensure_utc, now as utc_now


class Clock(Protocol):
    """Anything that can tell the current UTC instant."""

    def now(self) -> datetime: ...


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return utc_now()


class ManualClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime):
        self._now = ensure_utc(start)

    def now(self) -> datetime:
        return self._now

    def set(self, moment: datetime) -> None:
        self._now = ensure_utc(moment)

    def advance(self, delta: timedelta | None = None, **kwargs) -> datetime:
        """Move forward by a timedelta or timedelta keyword arguments."""
        self._now = self._now + (delta or timedelta(**kwargs))
        return self._now
