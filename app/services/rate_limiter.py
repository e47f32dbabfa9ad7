"""
Fixed-window rate limiter.

DESIGN PRINCIPLES:
- A subject's window starts on its first counted action and resets entirely
  once it has elapsed (no sliding window, no gradual decay)
- Denied calls never increment the counter
- check-and-increment is atomic per subject
- Counters live in a KeyedStateStore owned by the limiter instance

Two instances are wired by the service container: the per-publisher daily
submission quota (ceiling depends on trust tier) and the per-address hourly
one-time-code request quota.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, Optional
import logging
import math

from app.core.clock import Clock, system_clock
from app.core.errors import RateLimited
from app.store.keyed import KeyedStateStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after: Optional[float] = None  # seconds until the window resets (denials only)


class RateLimiter:
    """
    Counter keyed by subject with a fixed-length window.

    Args:
        name: Window kind, used in logs ("submission", "otp_request")
        limit: Default ceiling per window
        window_seconds: Window length
        clock: Time source
        store: Counter storage (a fresh one per limiter by default)
    """

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: int,
        clock: Clock = system_clock,
        store: Optional[KeyedStateStore] = None,
    ):
        self.name = name
        self.limit = limit
        self.window = timedelta(seconds=window_seconds)
        self.clock = clock
        self.store = store or KeyedStateStore(f"rate:{name}")

    def _is_expired(self, record: Optional[Dict], now: datetime) -> bool:
        return record is None or now >= record["reset_at"]

    def _denied(self, record: Dict, now: datetime, limit: int) -> RateDecision:
        retry_after = max(0.0, (record["reset_at"] - now).total_seconds())
        return RateDecision(allowed=False, limit=limit, remaining=0, retry_after=retry_after)

    def check(self, subject: str, limit: Optional[int] = None) -> RateDecision:
        """Report whether one more action would be allowed, without counting it."""
        limit = self.limit if limit is None else limit
        now = self.clock.now()
        with self.store.locked(subject):
            record = self.store.get(subject)
            if self._is_expired(record, now):
                if limit <= 0:
                    return RateDecision(False, limit, 0, self.window.total_seconds())
                return RateDecision(allowed=True, limit=limit, remaining=limit)
            if record["count"] >= limit:
                return self._denied(record, now, limit)
            return RateDecision(allowed=True, limit=limit, remaining=limit - record["count"])

    def consume(self, subject: str) -> int:
        """Count one action unconditionally. Returns the new count."""
        now = self.clock.now()
        with self.store.locked(subject):
            record = self.store.get(subject)
            if self._is_expired(record, now):
                record = {"count": 0, "reset_at": now + self.window}
            record["count"] += 1
            self.store.put(subject, record)
            return record["count"]

    def acquire(self, subject: str, limit: Optional[int] = None) -> RateDecision:
        """
        Atomically check the ceiling and count one action if allowed.

        Returns the decision; a denial leaves the counter untouched.
        """
        limit = self.limit if limit is None else limit
        now = self.clock.now()
        with self.store.locked(subject):
            record = self.store.get(subject)
            if self._is_expired(record, now):
                record = {"count": 0, "reset_at": now + self.window}
            if record["count"] >= limit:
                logger.warning(f"Rate limit '{self.name}' hit for {subject} ({record['count']}/{limit})")
                return self._denied(record, now, limit)
            record["count"] += 1
            self.store.put(subject, record)
            return RateDecision(allowed=True, limit=limit, remaining=limit - record["count"])

    def acquire_or_raise(self, subject: str, limit: Optional[int] = None, message: Optional[str] = None) -> RateDecision:
        decision = self.acquire(subject, limit)
        if not decision.allowed:
            minutes = math.ceil(decision.retry_after / 60)
            raise RateLimited(
                message or f"Too many requests. Try again after {minutes} minutes",
                retry_after=decision.retry_after,
            )
        return decision

    def release(self, subject: str) -> None:
        """Give back one slot taken by acquire() when the guarded action failed."""
        now = self.clock.now()
        with self.store.locked(subject):
            record = self.store.get(subject)
            if self._is_expired(record, now) or record["count"] <= 0:
                return
            record["count"] -= 1
            self.store.put(subject, record)

    def sweep(self) -> int:
        """Drop counters whose window has elapsed."""
        now = self.clock.now()
        return self.store.sweep(lambda record: now >= record["reset_at"])
