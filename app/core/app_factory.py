from __future__ import annotations

"""Application factory for FastAPI app.

Centralizes app construction (metadata, middleware, handlers, routers and the
lifespan that owns the Redis/database clients) so tests can build an app
around an injected ServiceContainer.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.api.routes import health_router, search_router
from app.core.config import Settings, parse_csv, settings as default_settings
from app.core.dependencies import ServiceContainer, build_container
from app.core.exception_handlers import setup_exception_handlers
from app.core.logging import configure_logging
from app.core.middleware import request_id_middleware
from app.core.openapi import apply_openapi_customizations


def create_app(
    container: ServiceContainer | None = None,
    *,
    settings: Settings | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application instance.

    Args:
        container: Prebuilt services. When omitted, the lifespan builds one
            from settings at startup and closes its clients at shutdown.
        settings: Settings override; defaults to the global settings.

    Returns:
        Configured FastAPI app with middleware, handlers, routers and docs.
    """
    cfg = settings or default_settings

    # Logging first so subsequent init logs are formatted as desired
    configure_logging(cfg.log, sql_echo=cfg.database.echo)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = None
        if getattr(app.state, "container", None) is None:
            owned = build_container(cfg)
            app.state.container = owned
        try:
            yield
        finally:
            if owned is not None:
                await owned.aclose()
                app.state.container = None

    app = FastAPI(
        title="SpeedSearch API",
        description=(
            "Autocomplete API answering prefix queries from a Redis sorted set "
            "or a PostgreSQL table, with a per-client sliding-window rate limit."
        ),
        version="0.1.0",
        debug=cfg.app.debug,
        lifespan=lifespan,
    )
    app.state.settings = cfg
    app.state.container = container

    # Middleware
    app.middleware("http")(request_id_middleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=parse_csv(cfg.app.cors_allow_origins) or ["*"],
        allow_methods=["GET", "OPTIONS"],
        allow_headers=["*"],
        expose_headers=[
            cfg.log.request_id_header,
            "X-Request-Duration-ms",
            "Retry-After",
            "X-RateLimit-Limit",
            "X-RateLimit-Remaining",
            "X-RateLimit-Reset",
        ],
    )

    # Exception handlers
    setup_exception_handlers(app)

    # Routers
    app.include_router(search_router, prefix="/api")
    app.include_router(health_router)

    apply_openapi_customizations(app)

    return app
