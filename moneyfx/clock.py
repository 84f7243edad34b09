"""
Injectable clock.

Rate dates, staleness and reconciliation schedules all depend on "today".
Services take a Clock in the constructor so tests can pin the date.
Dates are UTC calendar days.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone
from typing import Optional


class Clock(ABC):
    """Source of the current time."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware UTC datetime."""
        ...

    def today(self) -> date:
        return self.now().date()

    def yesterday(self) -> date:
        return self.today() - timedelta(days=1)


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock(Clock):
    """
    Test clock that only moves when told to.

    Usage:
        clock = FixedClock(datetime(2024, 6, 15, 9, tzinfo=timezone.utc))
        clock.advance(days=1)
    """

    def __init__(self, current: Optional[datetime] = None):
        current = current or datetime(2024, 1, 1, tzinfo=timezone.utc)
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current

    def now(self) -> datetime:
        return self._current

    def set(self, current: datetime) -> None:
        if current.tzinfo is None:
            current = current.replace(tzinfo=timezone.utc)
        self._current = current

    def advance(self, **kwargs) -> datetime:
        """Move forward by timedelta(**kwargs)."""
        self._current = self._current + timedelta(**kwargs)
        return self._current
