"""Redis-backed sliding-window rate limiter.

Counters live in Redis so every API instance shares one budget per client
identity. The read-estimate-increment sequence runs as a single Lua script,
which Redis executes atomically.
"""

from __future__ import annotations

import logging
import time
from typing import Callable

from redis.asyncio import Redis
from redis.exceptions import RedisError

from app.adapters.rate_limit.base import (
    AbstractRateLimiter,
    RateLimitResult,
    admissible_at_ms,
    blocked_result,
    locate_window,
)
from app.utils.simple_cache import EphemeralBlockCache

logger = logging.getLogger(__name__)

# KEYS: current bucket, previous bucket
# ARGV: limit, elapsed fraction of the current bucket, bucket ttl in ms
# Returns {1, remaining} when admitted, or {0, current, previous} when rejected
# (nothing is incremented on rejection).
SLIDING_WINDOW_SCRIPT = """
local limit = tonumber(ARGV[1])
local elapsed = tonumber(ARGV[2])
local ttl_ms = tonumber(ARGV[3])

local current = tonumber(redis.call("GET", KEYS[1]) or "0")
local previous = tonumber(redis.call("GET", KEYS[2]) or "0")
local weighted_previous = previous * (1 - elapsed)

if current + weighted_previous >= limit then
  return {0, current, previous}
end

local updated = redis.call("INCR", KEYS[1])
if updated == 1 then
  redis.call("PEXPIRE", KEYS[1], ttl_ms)
end

return {1, math.max(0, math.floor(limit - (updated + weighted_previous)))}
"""


class RedisSlidingWindowRateLimiter(AbstractRateLimiter):
    """Two-bucket sliding-window limiter with counters in Redis.

    Failure policy:
        When Redis raises, ``fail_open=True`` admits the request and
        ``fail_open=False`` rejects it. Either way a warning is logged.
    """

    def __init__(
        self,
        client: Redis,
        *,
        limit: int,
        window_seconds: int,
        prefix: str = "ratelimit",
        fail_open: bool = True,
        ephemeral_cache: EphemeralBlockCache | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """Initialize the Redis rate limiter.

        Args:
            client: Async Redis client.
            limit: Maximum number of admissions per window.
            window_seconds: Window (and bucket) length in seconds.
            prefix: Namespace for counter keys.
            fail_open: Admit requests when Redis is unreachable.
            ephemeral_cache: Optional local cache of blocked identifiers.
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
        self._prefix = prefix.rstrip(":")
        self._fail_open = fail_open
        self._cache = ephemeral_cache
        self._clock = clock
        self._script = client.register_script(SLIDING_WINDOW_SCRIPT)

    def _bucket_key(self, client_id: str, bucket: int) -> str:
        return f"{self._prefix}:{client_id}:{bucket}"

    async def admit(self, client_id: str) -> RateLimitResult:
        """Admit the request when the estimated window count is below the limit.

        Raises:
            ValueError: If client_id is empty.
        """
        if not client_id:
            raise ValueError("client_id must be a non-empty string")

        now_ms = int(self._clock() * 1000)
        position = locate_window(now_ms, self._window_ms)

        if self._cache is not None:
            reset_at_ms = self._cache.blocked_until(client_id, now_ms)
            if reset_at_ms is not None:
                return blocked_result(limit=self._limit, now_ms=now_ms, reset_at_ms=reset_at_ms)

        try:
            outcome = await self._script(
                keys=[
                    self._bucket_key(client_id, position.bucket),
                    self._bucket_key(client_id, position.bucket - 1),
                ],
                args=[self._limit, position.elapsed_fraction, self._window_ms * 2 + 1000],
            )
        except RedisError as exc:
            return self._on_store_failure(exc, now_ms=now_ms, reset_at_ms=position.reset_at_ms)

        if not int(outcome[0]):
            # Blocked only until the decaying estimate drops below the limit
            retry_at_ms = admissible_at_ms(
                limit=self._limit,
                current=int(outcome[1]),
                previous=int(outcome[2]),
                position=position,
                window_ms=self._window_ms,
            )
            if self._cache is not None and retry_at_ms > now_ms:
                self._cache.block(client_id, retry_at_ms)
            return blocked_result(limit=self._limit, now_ms=now_ms, reset_at_ms=retry_at_ms)

        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=int(outcome[1]),
            reset_at=position.reset_at_ms // 1000,
            retry_after_seconds=None,
        )

    def _on_store_failure(self, exc: RedisError, *, now_ms: int, reset_at_ms: int) -> RateLimitResult:
        logger.warning(
            "rate_limit.store_unavailable",
            extra={
                "error_type": type(exc).__name__,
                "error_msg": str(exc),
                "fail_open": self._fail_open,
            },
        )
        if not self._fail_open:
            return blocked_result(limit=self._limit, now_ms=now_ms, reset_at_ms=reset_at_ms)

        return RateLimitResult(
            allowed=True,
            limit=self._limit,
            remaining=self._limit,
            reset_at=reset_at_ms // 1000,
            retry_after_seconds=None,
        )
