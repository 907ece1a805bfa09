"""In-memory rate limiter with a window anchored at each key's first request.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state.
- Stale keys are pruned lazily once the table grows past a threshold.
"""

from __future__ import annotations

import math
import threading
import time
from dataclasses import dataclass
from typing import Callable

from jobguard.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult


@dataclass
class _WindowState:
    window_start: float
    count: int


class InMemoryRateLimiter(AbstractRateLimiter):
    """Count requests per key inside a window opened by the key's first request.

    Unlike a clock-aligned fixed window, a burst cannot straddle two windows
    to get twice the limit: the window only restarts ``window_seconds`` after
    the request that opened it.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
        prune_threshold: int = 10_000,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of allowed units per window.
            window_seconds: Window length in seconds.
            clock: Time source function returning UNIX time in seconds.
            prune_threshold: Tracked-key count that triggers a stale-key sweep.

        Raises:
            ValueError: If limit, window_seconds or prune_threshold are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")
        if prune_threshold < 1:
            raise ValueError("prune_threshold must be >= 1")

        self._limit = limit
        self._window_seconds = window_seconds
        self._clock = clock
        self._prune_threshold = prune_threshold
        self._lock = threading.RLock()
        self._state_by_key: dict[str, _WindowState] = {}

    @property
    def limit(self) -> int:
        return self._limit

    @property
    def window_seconds(self) -> int:
        return self._window_seconds

    def tracked_keys(self) -> int:
        with self._lock:
            return len(self._state_by_key)

    def _get_or_open_window(self, key: str, now: float) -> _WindowState:
        state = self._state_by_key.get(key)
        if state is None or now - state.window_start >= self._window_seconds:
            state = _WindowState(window_start=now, count=0)
            self._state_by_key[key] = state
        return state

    def _prune_locked(self, now: float) -> None:
        stale = [
            key
            for key, state in self._state_by_key.items()
            if now - state.window_start >= self._window_seconds
        ]
        for key in stale:
            del self._state_by_key[key]

    def consume(self, key: str, *, cost: int = 1) -> RateLimitResult:
        """Consume rate limit budget for the provided key.

        Checks the key's window usage and counts the request when allowed.

        Args:
            key: Unique identifier for rate limiting (e.g., API key).
            cost: Units to consume (default 1).

        Returns:
            RateLimitResult with allowance decision and metadata.

        Raises:
            ValueError: If key is empty or cost is invalid.
        """
        if cost < 1:
            raise ValueError("cost must be >= 1")
        if not key:
            raise ValueError("key must be a non-empty string")

        now = self._clock()

        with self._lock:
            if len(self._state_by_key) >= self._prune_threshold:
                self._prune_locked(now)

            state = self._get_or_open_window(key, now)
            reset_at = state.window_start + self._window_seconds

            if state.count + cost <= self._limit:
                state.count += cost
                return RateLimitResult(
                    allowed=True,
                    limit=self._limit,
                    remaining=max(0, self._limit - state.count),
                    reset_at=int(math.ceil(reset_at)),
                    retry_after_seconds=None,
                )

            return RateLimitResult(
                allowed=False,
                limit=self._limit,
                remaining=max(0, self._limit - state.count),
                reset_at=int(math.ceil(reset_at)),
                retry_after_seconds=max(1, int(math.ceil(reset_at - now))),
            )
