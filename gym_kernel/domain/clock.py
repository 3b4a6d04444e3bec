"""
Clock -- injectable time source.

Responsibility:
    Every rule that depends on "now" (date bounds on entities, overdue
    payments, contract expiration windows) reads it from a Clock passed in
    by the caller, never from ``datetime.now()``.

Architecture position:
    Kernel > Domain -- pure, zero I/O except SystemClock.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone


class Clock(ABC):
    """
    Abstract clock interface.

    Guarantees:
        ``now()`` returns a timezone-aware UTC ``datetime``.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...


class SystemClock(Clock):
    """Production clock backed by the system time."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Contract:
        ``now()`` returns the same value until ``advance()`` or
        ``set_time()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._offset = timedelta()

    def now(self) -> datetime:
        return (self._fixed_time + self._offset).astimezone(timezone.utc)

    def set_time(self, time: datetime) -> None:
        """Set the clock to a specific time."""
        self._fixed_time = time
        self._offset = timedelta()

    def advance(self, seconds: int = 0, *, days: int = 0) -> None:
        """Advance the clock by the given seconds and days."""
        self._offset += timedelta(seconds=seconds, days=days)
