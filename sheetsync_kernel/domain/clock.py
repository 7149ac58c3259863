"""
Clock -- Injectable time abstraction.

Responsibility:
    Provides a clock interface so that extraction and hierarchy code never call
    ``datetime.now()`` or ``time.monotonic()`` directly.  Wall-clock time is
    used for result timestamps; monotonic time is used for stream deadlines.

Failure modes:
    - SequentialClock raises RuntimeError if exhausted and no fallback time.
"""

import time
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Iterator


class Clock(ABC):
    """
    Abstract clock interface.

    Contract:
        Services that need the current time or a deadline receive a Clock
        instance via constructor injection.

    Guarantees:
        - ``now()`` returns a timezone-aware ``datetime``.
        - ``monotonic()`` returns seconds that never go backwards.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Get the current time."""
        ...

    @abstractmethod
    def monotonic(self) -> float:
        """Seconds from an arbitrary origin, for measuring elapsed time."""
        ...


class SystemClock(Clock):
    """Production clock backed by the system wall clock and monotonic timer."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)

    def monotonic(self) -> float:
        return time.monotonic()


class DeterministicClock(Clock):
    """
    Test clock with controlled time.

    Guarantees:
        - ``now()`` and ``monotonic()`` only move when ``advance()`` or
          ``tick()`` is called.
    """

    def __init__(self, fixed_time: datetime | None = None):
        self._fixed_time = fixed_time or datetime(
            2024, 1, 1, 12, 0, 0, tzinfo=timezone.utc
        )
        self._advance_seconds = 0.0

    def now(self) -> datetime:
        return self._fixed_time + timedelta(seconds=self._advance_seconds)

    def monotonic(self) -> float:
        return self._advance_seconds

    def set_time(self, time: datetime) -> None:
        """Set the wall clock to a specific time. Monotonic time is unaffected."""
        self._fixed_time = time - timedelta(seconds=self._advance_seconds)

    def advance(self, seconds: float = 1) -> None:
        """Advance the clock by the specified seconds."""
        self._advance_seconds += seconds

    def tick(self) -> datetime:
        """Advance by 1 second and return new time."""
        self.advance(1)
        return self.now()


class SequentialClock(Clock):
    """
    Clock that returns wall-clock times from a predefined list.

    Contract:
        Initialized with a non-empty list of ``datetime`` values.  After
        exhaustion, repeats the last value.  ``monotonic()`` counts calls to
        ``now()`` so elapsed-time checks stay consistent with the sequence.

    Raises:
        ValueError: If initialized with an empty list.
    """

    def __init__(self, times: list[datetime]):
        if not times:
            raise ValueError("SequentialClock requires at least one time")
        self._times: Iterator[datetime] = iter(times)
        self._last_time: datetime | None = None
        self._calls = 0

    def now(self) -> datetime:
        self._calls += 1
        try:
            self._last_time = next(self._times)
        except StopIteration:
            if self._last_time is None:
                raise RuntimeError("SequentialClock exhausted with no times")
        return self._last_time

    def monotonic(self) -> float:
        return float(self._calls)
