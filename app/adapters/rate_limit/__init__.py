"""Rate limiting adapters.

Both limiters implement the same two-bucket sliding window; Redis shares the
counters across API instances, process memory serves local runs and tests.
"""

from app.adapters.rate_limit.base import AbstractRateLimiter, RateLimitResult
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.redis_store import RedisSlidingWindowRateLimiter

__all__ = [
    "AbstractRateLimiter",
    "InMemorySlidingWindowRateLimiter",
    "RateLimitResult",
    "RedisSlidingWindowRateLimiter",
]
