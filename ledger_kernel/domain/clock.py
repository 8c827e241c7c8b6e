"""
Clock -- Deterministic time abstraction.

Responsibility:
    Provides an injectable clock interface so that engine, selector and
    service code never call ``datetime.now()`` or ``date.today()`` directly.
    Overdue detection, alert throttling and settlement dates all depend on
    "today", so tests must be able to pin it.

Architecture position:
    Kernel > Domain -- pure functional core, zero I/O (except SystemClock,
    which is the one sanctioned I/O boundary for time).
"""

from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        All services that need current time receive a Clock instance via
        constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``today()`` is the UTC calendar date of ``now()``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    def now_utc(self) -> datetime:
        """Get the current UTC time."""
        return self.now().astimezone(timezone.utc)

    def today(self) -> date:
        """Get the current UTC calendar date."""
        return self.now_utc().date()


class SystemClock(Clock):
    """Production clock returning actual system time in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` returns the same value on repeated calls until
          ``advance()`` or ``set_time()`` is called.
        - ``tick()`` advances by exactly 1 second and returns the new time.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._advance_seconds = 0

    def advance(self, seconds: int = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def advance_days(self, days: int) -> None:
        self.advance(days * 86400)

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()


def as_utc(value: datetime | None) -> datetime | None:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    SQLite drops tzinfo on the way back; every stored timestamp in the
    ledger is written in UTC, so a naive value is read as UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
