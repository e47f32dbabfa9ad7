"""
Clock abstraction so expiries and window resets can be driven in tests.
"""

from datetime import datetime, timedelta, timezone
import threading


class Clock:
    """Wall clock returning timezone-aware UTC datetimes."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class ManualClock(Clock):
    """
    Clock that only moves when told to.

    Used by tests and by scripts that replay events at fixed times.
    """

    def __init__(self, start: datetime = None):
        self._now = start or datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)
        self._lock = threading.Lock()

    def now(self) -> datetime:
        with self._lock:
            return self._now

    def advance(self, seconds: float = 0, **kwargs) -> datetime:
        with self._lock:
            self._now = self._now + timedelta(seconds=seconds, **kwargs)
            return self._now


system_clock = Clock()
