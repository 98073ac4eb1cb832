"""In-memory sliding window rate limiter.

Keeps per-user action timestamps and allows at most ``limit`` actions in
any trailing window. Suitable for a single-process deployment; state is
lost on restart.
"""

from __future__ import annotations

import math
import threading
import time
from collections import deque
from collections.abc import Callable
from dataclasses import replace

from structlog import get_logger

from votegate.application.ports.gates import RateLimitDecision, RateLimiterProtocol

logger = get_logger(__name__)

SECONDS_PER_MINUTE = 60
SECONDS_PER_DAY = 24 * 60 * 60

# Full expiry sweep cadence, in acquisitions
SWEEP_INTERVAL = 1024


class InMemoryRateLimiter(RateLimiterProtocol):
    """Sliding window rate limiter keyed by user id.

    Attributes:
        name: Gate name used in logs ("submit", "vote").
    """

    def __init__(
        self,
        name: str,
        limit: int,
        window_seconds: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the limiter.

        Args:
            name: Gate name used in logs.
            limit: Maximum actions per window.
            window_seconds: Window length in seconds.
            clock: Monotonic time source (injectable for tests).
        """
        if limit < 1:
            raise ValueError(f"limit must be positive, got {limit}")
        if window_seconds <= 0:
            raise ValueError(f"window_seconds must be positive, got {window_seconds}")
        self.name = name
        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._events: dict[str, deque[float]] = {}
        self._acquisitions = 0
        self._lock = threading.Lock()

    def _prune(self, user_id: str, now: float) -> deque[float] | None:
        """Drop expired entries; users with nothing left are evicted."""
        events = self._events.get(user_id)
        if events is None:
            return None
        cutoff = now - self._window_seconds
        while events and events[0] <= cutoff:
            events.popleft()
        if not events:
            del self._events[user_id]
            return None
        return events

    def _decide(
        self, user_id: str, now: float, events: deque[float] | None
    ) -> RateLimitDecision:
        used = len(events) if events else 0
        if used < self._limit:
            return RateLimitDecision(
                allowed=True,
                remaining=self._limit - used,
                limit=self._limit,
            )

        retry_after = math.ceil(events[0] + self._window_seconds - now) if events else 1
        logger.info(
            "rate_limit_denied",
            gate=self.name,
            user_id=user_id,
            limit=self._limit,
            retry_after_seconds=retry_after,
        )
        return RateLimitDecision(
            allowed=False,
            remaining=0,
            limit=self._limit,
            retry_after_seconds=max(1, retry_after),
        )

    async def check(self, user_id: str) -> RateLimitDecision:
        now = self._clock()
        with self._lock:
            events = self._prune(user_id, now)
            return self._decide(user_id, now, events)

    async def acquire(self, user_id: str) -> RateLimitDecision:
        """Check and, when allowed, take one unit of allowance in one step."""
        now = self._clock()
        with self._lock:
            events = self._prune(user_id, now)
            decision = self._decide(user_id, now, events)
            if decision.allowed:
                self._events.setdefault(user_id, deque()).append(now)
                decision = replace(decision, remaining=decision.remaining - 1)
            self._acquisitions += 1
            if self._acquisitions % SWEEP_INTERVAL == 0:
                self._sweep_locked(now)
        return decision

    async def release(self, user_id: str) -> None:
        """Give back the most recent unit taken by acquire()."""
        with self._lock:
            events = self._events.get(user_id)
            if not events:
                return
            events.pop()
            if not events:
                del self._events[user_id]

    def tracked_users(self) -> int:
        """Number of users holding entries (expired ones included until touched)."""
        with self._lock:
            return len(self._events)

    def _sweep_locked(self, now: float) -> int:
        before = len(self._events)
        for user_id in list(self._events):
            self._prune(user_id, now)
        return before - len(self._events)

    def sweep(self) -> int:
        """Evict every user whose entries have all expired.

        Runs on its own every SWEEP_INTERVAL acquisitions.

        Returns:
            Number of users evicted.
        """
        now = self._clock()
        with self._lock:
            evicted = self._sweep_locked(now)
        if evicted:
            logger.debug("rate_limit_swept", gate=self.name, evicted=evicted)
        return evicted

    def reset(self) -> None:
        """Forget all recorded actions."""
        with self._lock:
            self._events.clear()

    @classmethod
    def per_day(cls, name: str, limit: int) -> InMemoryRateLimiter:
        return cls(name=name, limit=limit, window_seconds=SECONDS_PER_DAY)

    @classmethod
    def per_minute(cls, name: str, limit: int) -> InMemoryRateLimiter:
        return cls(name=name, limit=limit, window_seconds=SECONDS_PER_MINUTE)
