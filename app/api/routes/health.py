from __future__ import annotations

from fastapi import APIRouter, Request

from app.schemas.search import HealthResponse

router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
def health_check(request: Request) -> HealthResponse:
    """Liveness check listing the engines this instance can serve.

    Does not contact Redis or the database.
    """

    container = getattr(request.app.state, "container", None)
    engines = container.search_service.engines if container is not None else []
    return HealthResponse(status="ok", engines=engines)
