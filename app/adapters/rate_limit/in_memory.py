"""In-memory sliding-window rate limiter.

Notes:
- Per-process only: running multiple workers multiplies the effective limit.
- Thread-safe: uses a lock around shared state, never held across an await.
"""

from __future__ import annotations

import math
import threading
import time
from typing import Callable

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    admissible_at_ms,
    blocked_result,
    estimate_window_count,
    locate_window,
)


class InMemorySlidingWindowRateLimiter(AbstractRateLimiter):
    """Two-bucket sliding-window limiter keeping counters in process memory.

    Important:
        This limiter is per-process only. Use the Redis limiter when the API
        runs as several workers or instances.
    """

    def __init__(
        self,
        *,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the in-memory rate limiter.

        Args:
            limit: Maximum number of admissions per window.
            window_seconds: Window (and bucket) length in seconds.
            clock: Time source function returning UNIX time in seconds.

        Raises:
            ValueError: If limit or window_seconds are invalid.
        """
        if limit < 1:
            raise ValueError("limit must be >= 1")
        if window_seconds < 1:
            raise ValueError("window_seconds must be >= 1")

        self._limit = limit
        self._window_ms = window_seconds * 1000
        self._clock = clock
        self._lock = threading.RLock()
        # client id -> {bucket number: count}; only the two newest buckets are kept
        self._buckets_by_key: dict[str, dict[int, int]] = {}

    async def admit(self, client_id: str) -> RateLimitResult:
        """Admit the request when the estimated window count is below the limit.

        Raises:
            ValueError: If client_id is empty.
        """
        if not client_id:
            raise ValueError("client_id must be a non-empty string")

        now_ms = int(self._clock() * 1000)
        position = locate_window(now_ms, self._window_ms)

        with self._lock:
            buckets = self._buckets_by_key.setdefault(client_id, {})
            for bucket in [b for b in buckets if b < position.bucket - 1]:
                del buckets[bucket]

            current = buckets.get(position.bucket, 0)
            previous = buckets.get(position.bucket - 1, 0)
            estimated = estimate_window_count(current, previous, position.elapsed_fraction)

            if estimated >= self._limit:
                retry_at_ms = admissible_at_ms(
                    limit=self._limit,
                    current=current,
                    previous=previous,
                    position=position,
                    window_ms=self._window_ms,
                )
                return blocked_result(limit=self._limit, now_ms=now_ms, reset_at_ms=retry_at_ms)

            buckets[position.bucket] = current + 1
            remaining = max(0, math.floor(self._limit - (estimated + 1)))

        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=remaining,
            reset_at=position.reset_at_ms // 1000,
            retry_after_seconds=None,
        )
