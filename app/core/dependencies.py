"""Process-wide service construction.

Clients for Redis and the relational database are created once at startup,
bundled in a ServiceContainer, and handed to request handlers through
``app.state``. Tests build a container from in-memory parts instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import Request
from redis.asyncio import Redis
from sqlalchemy.ext.asyncio import AsyncEngine

from app.adapters.terms.base import Engine
from app.adapters.terms.ordered_set import OrderedSetTermIndex, RedisOrderedSetStore
from app.adapters.terms.relational import RelationalTermIndex, get_engine, make_session_factory
from app.core.config import Settings
from app.core.rate_limit import build_rate_limiter
from app.services.search_service import SearchService, resolve_engine

logger = logging.getLogger(__name__)


@dataclass
class ServiceContainer:
    """Long-lived clients and the search service built from them."""

    search_service: SearchService
    redis_client: Redis | None = None
    db_engine: AsyncEngine | None = None

    async def aclose(self) -> None:
        """Release network clients; safe to call more than once."""
        if self.redis_client is not None:
            await self.redis_client.aclose()
            self.redis_client = None
        if self.db_engine is not None:
            await self.db_engine.dispose()
            self.db_engine = None


def build_container(settings: Settings) -> ServiceContainer:
    """Create clients, term indexes and the search service from settings.

    No connection is opened here; clients connect lazily on first use.
    """

    redis_client = Redis.from_url(
        settings.redis.url,
        decode_responses=True,
        socket_timeout=settings.redis.socket_timeout_seconds,
        socket_connect_timeout=settings.redis.socket_timeout_seconds,
    )
    db_engine = get_engine(settings.database.url, echo=settings.database.echo)

    max_results = settings.app.search_max_results
    indexes = {
        Engine.REDIS: OrderedSetTermIndex(
            RedisOrderedSetStore(redis_client, key=settings.redis.terms_key),
            max_results=max_results,
        ),
        Engine.POSTGRESQL: RelationalTermIndex(
            make_session_factory(db_engine),
            max_results=max_results,
        ),
    }

    service = SearchService(
        indexes,
        build_rate_limiter(settings.app, redis_client),
        default_engine=resolve_engine(settings.app.search_default_engine),
    )

    logger.info(
        "services.built",
        extra={
            "engines": service.engines,
            "default_engine": service.default_engine.value,
            "rate_limit_enabled": service.rate_limiter is not None,
        },
    )
    return ServiceContainer(search_service=service, redis_client=redis_client, db_engine=db_engine)


def get_search_service(request: Request) -> SearchService:
    """FastAPI dependency returning the process-wide search service."""
    container: ServiceContainer = request.app.state.container
    return container.search_service
