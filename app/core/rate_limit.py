"""Rate limiting wiring for the HTTP layer.

This module wires the rate limiting adapters into the application:
- Client identity comes from the forwarding headers set by the edge proxy.
- The limiter is built once at process start from settings and injected into
  the search service (see app.core.dependencies).
"""

from __future__ import annotations

import logging

from fastapi import Request
from redis.asyncio import Redis

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.rate_limit.in_memory import InMemorySlidingWindowRateLimiter
from app.adapters.rate_limit.redis_store import RedisSlidingWindowRateLimiter
from app.core.config import AppSettings
from app.utils.simple_cache import EphemeralBlockCache

logger = logging.getLogger(__name__)

ANONYMOUS_CLIENT = "anonymous"


def resolve_client_id(request: Request) -> str:
    """Derive the rate limit identity for the current request.

    Uses the first address of ``X-Forwarded-For``, then ``X-Real-IP``, and
    falls back to ``"anonymous"``.

    Args:
        request: FastAPI request.

    Returns:
        str: Client identity, never empty.
    """

    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first

    real_ip = (request.headers.get("x-real-ip") or "").strip()
    if real_ip:
        return real_ip

    return ANONYMOUS_CLIENT


def build_rate_limiter(
    app_settings: AppSettings,
    redis_client: Redis | None = None,
) -> AbstractRateLimiter | None:
    """Build the configured rate limiter.

    Args:
        app_settings: Application settings (rate_limit_* fields).
        redis_client: Shared Redis client, required for the redis backend.

    Returns:
        The limiter, or None when rate limiting is disabled.

    Raises:
        ValueError: If the backend is unknown or Redis is required but missing.
    """

    if not app_settings.rate_limit_enabled:
        logger.info("rate_limit.disabled")
        return None

    backend = app_settings.rate_limit_backend.strip().lower()

    if backend == "memory":
        return InMemorySlidingWindowRateLimiter(
            limit=app_settings.rate_limit_requests,
            window_seconds=app_settings.rate_limit_window_seconds,
        )

    if backend == "redis":
        if redis_client is None:
            raise ValueError("redis rate limit backend requires a Redis client")
        return RedisSlidingWindowRateLimiter(
            redis_client,
            limit=app_settings.rate_limit_requests,
            window_seconds=app_settings.rate_limit_window_seconds,
            prefix=app_settings.rate_limit_prefix,
            fail_open=app_settings.rate_limit_fail_open,
            ephemeral_cache=EphemeralBlockCache(),
        )

    raise ValueError(f"Unknown rate limit backend: '{backend}'. Supported: redis, memory")
