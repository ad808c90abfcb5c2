"""Injectable clock so services never call ``datetime.now()`` directly."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, UTC


class Clock(ABC):
    """Source of the current time.

    ``now()`` always returns a timezone-aware UTC datetime.
    """

    @abstractmethod
    def now(self) -> datetime:
        """Return the current UTC time."""
        pass


class SystemClock(Clock):
    """Clock backed by the system time."""

    def now(self) -> datetime:
        """Return the current UTC time."""
        return datetime.now(UTC)


class ManualClock(Clock):
    """Clock that only moves when told to. Used by tests and replays."""

    def __init__(self, start: datetime | None = None):
        """Initialize manual clock.

        Args:
            start: Initial time. Naive datetimes are treated as UTC.
                Defaults to 2024-01-01T00:00:00Z.
        """
        if start is None:
            start = datetime(2024, 1, 1, tzinfo=UTC)
        elif start.tzinfo is None:
            start = start.replace(tzinfo=UTC)
        self._now = start
        self._lock = threading.Lock()

    def now(self) -> datetime:
        """Return the current manual time."""
        with self._lock:
            return self._now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        """Move the clock forward.

        Args:
            seconds: Seconds to advance
            **kwargs: Extra ``timedelta`` arguments (minutes, milliseconds, ...)

        Returns:
            The new current time
        """
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds, **kwargs)
            return self._now

    def set(self, moment: datetime) -> None:
        """Jump to an absolute time."""
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=UTC)
        with self._lock:
            self._now = moment


def elapsed_ms(started_at: datetime, finished_at: datetime) -> int:
    """Return whole milliseconds between two instants (never negative)."""
    delta = finished_at - started_at
    return max(0, int(delta.total_seconds() * 1000))
