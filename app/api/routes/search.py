from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request

from app.core.dependencies import get_search_service
from app.core.rate_limit import resolve_client_id
from app.schemas.search import ErrorResponse, SearchResponse
from app.services.search_service import SearchService

router = APIRouter(tags=["Search"])


@router.get(
    "/search",
    response_model=SearchResponse,
    responses={
        400: {"model": ErrorResponse, "description": "Empty query or unknown engine"},
        429: {"model": ErrorResponse, "description": "Rate limit exceeded"},
        500: {"model": ErrorResponse, "description": "Storage backend failure"},
    },
)
async def search(
    request: Request,
    service: Annotated[SearchService, Depends(get_search_service)],
    q: Annotated[str | None, Query(description="Prefix to complete")] = None,
    engine: Annotated[
        str | None,
        Query(description="Term index to query: redis (default) or postgresql"),
    ] = None,
) -> SearchResponse:
    """Return complete terms starting with ``q``.

    ``q`` is optional at the HTTP level so that rate limiting runs before
    query validation; a missing or blank query is answered with 400 by the
    service.

    Args:
        request: Incoming request, used to derive the client identity.
        service: Process-wide search service.
        q: Raw query text.
        engine: Engine selector (case-insensitive).

    Returns:
        SearchResponse: Matched terms and lookup duration in milliseconds.
    """
    return await service.search(resolve_client_id(request), q, engine)
