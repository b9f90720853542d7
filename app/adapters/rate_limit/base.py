"""Rate limiter interfaces.

The dispatcher depends on this abstraction (not the concrete implementation)
so the counter store can be Redis (shared across instances) or process memory.
"""

from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class RateLimitResult:
    """Result of a rate limit admission check.

    Attributes:
        allowed: Whether the request is allowed to proceed.
        limit: Max requests per window.
        remaining: Estimated remaining requests in the sliding window (0 when blocked).
        reset_at: UNIX epoch seconds when the current bucket ends; when blocked,
            when the estimate next drops below the limit.
        retry_after_seconds: Suggested wait time in seconds when blocked.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: int
    retry_after_seconds: int | None


@dataclass(frozen=True)
class WindowPosition:
    """Where a timestamp falls among the fixed buckets of a sliding window."""

    bucket: int
    elapsed_fraction: float
    reset_at_ms: int


def locate_window(now_ms: int, window_ms: int) -> WindowPosition:
    """Locate the current bucket for a timestamp.

    Args:
        now_ms: UNIX time in milliseconds.
        window_ms: Bucket (and window) length in milliseconds.

    Returns:
        WindowPosition with the bucket number, the fraction of it already
        elapsed and the epoch millisecond at which it ends.
    """
    bucket = now_ms // window_ms
    return WindowPosition(
        bucket=bucket,
        elapsed_fraction=(now_ms % window_ms) / window_ms,
        reset_at_ms=(bucket + 1) * window_ms,
    )


def estimate_window_count(current: int, previous: int, elapsed_fraction: float) -> float:
    """Estimate requests in the trailing window from two adjacent buckets.

    The previous bucket is weighted by the share of it that still overlaps the
    trailing window.
    """
    return current + previous * (1 - elapsed_fraction)


def admissible_at_ms(
    *,
    limit: int,
    current: int,
    previous: int,
    position: WindowPosition,
    window_ms: int,
) -> int:
    """Earliest epoch ms at which a rejected client's estimate drops below ``limit``.

    Within a bucket only the weight of the previous bucket decays, so the
    estimate falls below the limit once
    ``elapsed_ms * previous > window_ms * (previous - (limit - current))``.
    When the current bucket alone reaches the limit the answer is the bucket end.

    Examples:
        >>> pos = WindowPosition(bucket=101, elapsed_fraction=0.0, reset_at_ms=1_020_000)
        >>> admissible_at_ms(limit=2, current=1, previous=2, position=pos, window_ms=10_000)
        1015001
    """
    if current >= limit or previous <= 0:
        return position.reset_at_ms

    bucket_start_ms = position.reset_at_ms - window_ms
    excess = previous - (limit - current)
    if excess < 0:
        return bucket_start_ms
    return min(position.reset_at_ms, bucket_start_ms + (window_ms * excess) // previous + 1)


def blocked_result(*, limit: int, now_ms: int, reset_at_ms: int) -> RateLimitResult:
    retry_after = max(0, int(math.ceil((reset_at_ms - now_ms) / 1000)))
    return RateLimitResult(
        allowed=False,
        limit=limit,
        remaining=0,
        reset_at=reset_at_ms // 1000,
        retry_after_seconds=retry_after,
    )


class AbstractRateLimiter(ABC):
    """Interface for sliding-window rate limiters."""

    @abstractmethod
    async def admit(self, client_id: str) -> RateLimitResult:
        """Check and, when admitted, record one request for a client identity.

        Rejected attempts do not consume budget.

        Args:
            client_id: Client identity (forwarded IP or "anonymous").

        Returns:
            RateLimitResult describing whether it was allowed.
        """
        raise NotImplementedError
