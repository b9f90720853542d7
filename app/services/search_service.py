"""Prefix-search dispatch: admission, normalization, engine routing, timing.

This service is the core business logic behind ``GET /api/search``. Checks run
in a fixed order (rate limit, validation, backend dispatch) and each failure
maps to one error type:
- RateLimitAppError: the client exceeded its budget, no backend call
- ValidationAppError: empty query or unknown engine
- BackendAppError: the selected term index raised
"""

from __future__ import annotations

import hashlib
import logging
import time
from typing import Callable, Mapping

from app.adapters.rate_limit.base import AbstractRateLimiter
from app.adapters.terms.base import Engine, TermIndex
from app.core.errors import BackendAppError, RateLimitAppError, ValidationAppError
from app.schemas.search import SearchResponse
from app.utils.text_normalizer import normalize_query

logger = logging.getLogger(__name__)


def hash_client_id(client_id: str) -> str:
    """Hash a client identity for logging without exposing addresses."""
    return hashlib.sha256(client_id.encode()).hexdigest()[:16]


def resolve_engine(selector: str | None, default: Engine = Engine.REDIS) -> Engine:
    """Resolve an engine selector (trimmed, case-insensitive).

    Args:
        selector: Raw ``engine`` value; None or blank selects ``default``.
        default: Engine used when no selector is given.

    Returns:
        The matching Engine.

    Raises:
        ValidationAppError: If the selector names no supported engine.
    """
    if selector is None or not selector.strip():
        return default

    name = selector.strip().lower()
    try:
        return Engine(name)
    except ValueError:
        raise ValidationAppError(
            code="unknown_engine",
            message=f"Unknown search engine: '{name}'",
            details={"engine": name, "supported_engines": [e.value for e in Engine]},
        ) from None


class SearchService:
    """Dispatch prefix queries to the selected term index.

    Attributes:
        indexes: Lookup table from engine to its term index.
        rate_limiter: Admission control; None disables rate limiting.
        default_engine: Engine used when a request does not select one.
    """

    def __init__(
        self,
        indexes: Mapping[Engine, TermIndex],
        rate_limiter: AbstractRateLimiter | None = None,
        *,
        default_engine: Engine = Engine.REDIS,
        timer: Callable[[], float] = time.perf_counter,
    ) -> None:
        self.indexes = dict(indexes)
        self.rate_limiter = rate_limiter
        self.default_engine = default_engine
        self._timer = timer

    @property
    def engines(self) -> list[str]:
        return [engine.value for engine in self.indexes]

    async def _enforce_rate_limit(self, client_id: str) -> None:
        if self.rate_limiter is None:
            return

        result = await self.rate_limiter.admit(client_id)
        if result.allowed:
            logger.debug(
                "rate_limit.allowed",
                extra={
                    "client_hash": hash_client_id(client_id),
                    "limit": result.limit,
                    "remaining": result.remaining,
                },
            )
            return

        retry_after = result.retry_after_seconds or 0
        logger.warning(
            "rate_limit.exceeded",
            extra={
                "client_hash": hash_client_id(client_id),
                "limit": result.limit,
                "retry_after_s": retry_after,
            },
        )
        raise RateLimitAppError(
            code="rate_limit_exceeded",
            message="Rate limit exceeded",
            details={
                "limit": result.limit,
                "remaining": result.remaining,
                "reset_at": result.reset_at,
                "retry_after": retry_after,
            },
        )

    async def search(
        self,
        client_id: str,
        raw_query: str | None,
        engine_selector: str | None = None,
    ) -> SearchResponse:
        """Run one prefix query for a client.

        Args:
            client_id: Client identity used as the rate limit key.
            raw_query: Query as received; normalized before lookup.
            engine_selector: Requested engine name, or None for the default.

        Returns:
            SearchResponse with the matched terms and the lookup time in ms.

        Raises:
            RateLimitAppError: If the client is over its budget.
            ValidationAppError: If the query is empty or the engine unknown.
            BackendAppError: If the term index fails.
        """
        await self._enforce_rate_limit(client_id)

        query = normalize_query(raw_query)
        if not query:
            raise ValidationAppError(code="invalid_query", message="Invalid search query")

        engine = resolve_engine(engine_selector, self.default_engine)
        index = self.indexes.get(engine)
        if index is None:
            raise BackendAppError(
                code="engine_unavailable",
                message="Something went wrong",
                details={"engine": engine.value},
            )

        start = self._timer()
        try:
            results = await index.prefix_search(query)
        except Exception as exc:
            logger.exception(
                "search.backend_failed",
                extra={
                    "engine": engine.value,
                    "error_type": type(exc).__name__,
                    "error_msg": str(exc),
                },
            )
            raise BackendAppError(
                code="backend_error",
                message="Something went wrong",
                details={"engine": engine.value},
            ) from exc
        duration_ms = (self._timer() - start) * 1000

        logger.info(
            "search.completed",
            extra={
                "engine": engine.value,
                "query_length": len(query),
                "result_count": len(results),
                "duration_ms": round(duration_ms, 3),
            },
        )
        return SearchResponse(results=list(results), duration=duration_ms)
