"""
Injectable time source.

Ledger and document services never call ``date.today()`` themselves:
arrival, dispatch and closure dates, invoice due dates, production
expiry and overdue checks all read the injected Clock.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """Source of the current time; ``now()`` is always timezone-aware."""

    @abstractmethod
    def now(self) -> datetime:
        ...

    def today(self) -> date:
        """Business date of ``now()``."""
        return self.now().date()


class SystemClock(Clock):
    """Wall clock, UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Clock that only moves when told to.

    Starts at 2025-08-01 08:00 UTC unless given another instant, so tests
    can assert exact document dates and expiry dates.
    """

    START = datetime(2025, 8, 1, 8, 0, 0, tzinfo=timezone.utc)

    def __init__(self, fixed_time: datetime | None = None):
        self._current = fixed_time or self.START

    def now(self) -> datetime:
        return self._current

    def set_time(self, time: datetime) -> None:
        self._current = time

    def advance(self, seconds: int = 0, days: int = 0) -> None:
        """Move forward, e.g. ``advance(days=31)`` to pass an invoice due date."""
        self._current += timedelta(days=days, seconds=seconds)
