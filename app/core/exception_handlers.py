"""Global exception handlers for consistent error responses.

This module provides FastAPI exception handlers that intercept all errors
(domain and unexpected) and return consistent JSON responses with proper
HTTP status codes and traceability.

Design:
- ValidationAppError → 400
- RateLimitAppError → 429 (with Retry-After / X-RateLimit-* headers)
- BackendAppError and unexpected Exception → 500 with empty results
- All responses include request_id for distributed tracing
"""

import logging

from fastapi import Request
from fastapi.responses import JSONResponse

from app.core.config import settings_for
from app.core.errors import AppError, BackendAppError, RateLimitAppError, ValidationAppError
from app.core.logging import get_request_id
from app.schemas.search import ErrorResponse

logger = logging.getLogger(__name__)


def _status_for(exc: AppError) -> int:
    if isinstance(exc, RateLimitAppError):
        return 429
    if isinstance(exc, BackendAppError):
        return 500
    if isinstance(exc, ValidationAppError):
        return 400
    return 500


def _rate_limit_headers(request: Request, exc: AppError) -> dict[str, str]:
    if not isinstance(exc, RateLimitAppError):
        return {}
    if not settings_for(request.app).app.rate_limit_include_headers:
        return {}

    details = exc.details or {}
    headers = {"Retry-After": str(details.get("retry_after", 0))}
    if "limit" in details:
        headers["X-RateLimit-Limit"] = str(details["limit"])
    if "remaining" in details:
        headers["X-RateLimit-Remaining"] = str(details["remaining"])
    if "reset_at" in details:
        headers["X-RateLimit-Reset"] = str(details["reset_at"])
    return headers


def _render(body: ErrorResponse) -> dict:
    content = body.model_dump()
    if content["results"] is None:
        del content["results"]
    return content


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    """Handle domain application errors with consistent JSON format.

    Server-side failures carry an empty ``results`` list so search clients can
    treat every response body the same way; their details stay in the logs.

    Args:
        request: FastAPI request object.
        exc: AppError instance (or subclass).

    Returns:
        JSONResponse with appropriate status code and error body.
    """
    status_code = _status_for(exc)

    logger.warning(
        "app_error_handled",
        extra={
            "error_code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "request_path": request.url.path,
            "request_id": get_request_id(),
        },
    )

    body = ErrorResponse(
        message=exc.message,
        code=exc.code,
        request_id=get_request_id(),
        results=[] if status_code >= 500 else None,
    )

    return JSONResponse(
        status_code=status_code,
        content=_render(body),
        headers=_rate_limit_headers(request, exc) or None,
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Fallback handler for unexpected errors (safety net).

    Logs detailed information for debugging while returning a generic message.
    No stack traces reach the client.

    Args:
        request: FastAPI request object.
        exc: Exception instance (unexpected).

    Returns:
        JSONResponse with generic error (no implementation details leaked).
    """
    logger.error(
        "unhandled_exception",
        extra={
            "error_type": type(exc).__name__,
            "error_msg": str(exc),
            "request_path": request.url.path,
            "request_method": request.method,
            "request_id": get_request_id(),
        },
    )

    body = ErrorResponse(
        message="Something went wrong",
        code="internal_server_error",
        request_id=get_request_id(),
        results=[],
    )
    return JSONResponse(status_code=500, content=_render(body))


def setup_exception_handlers(app) -> None:
    """Register all exception handlers with FastAPI app.

    Args:
        app: FastAPI application instance.
    """
    app.exception_handler(AppError)(app_error_handler)
    app.exception_handler(Exception)(general_exception_handler)
