"""Tests for global exception handlers.

Validates that every error type maps to its HTTP status, that the body keeps
one shape, and that no internal detail leaks to clients.
"""

import asyncio
import json
from unittest.mock import AsyncMock

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.errors import (
    AppError,
    BackendAppError,
    RateLimitAppError,
    ValidationAppError,
)
from app.core.exception_handlers import setup_exception_handlers


@pytest.fixture
def app_with_handlers() -> FastAPI:
    """Create FastAPI app with exception handlers registered."""
    app = FastAPI()
    setup_exception_handlers(app)
    return app


@pytest.fixture
def client(app_with_handlers: FastAPI) -> TestClient:
    return TestClient(app_with_handlers)


def _body(response) -> dict:
    raw = response.body if isinstance(response.body, bytes) else bytes(response.body)
    return json.loads(raw.decode())


class TestAppErrorHandler:
    """Test handler for AppError and subclasses."""

    def test_validation_error_returns_400(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-validation")
        async def test_endpoint():
            raise ValidationAppError(code="invalid_query", message="Invalid search query")

        response = client.get("/test-validation")

        assert response.status_code == 400
        data = response.json()
        assert data["code"] == "invalid_query"
        assert data["message"] == "Invalid search query"
        assert "request_id" in data
        assert "results" not in data

    def test_rate_limit_error_returns_429_with_headers(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-rate-limit")
        async def test_endpoint():
            raise RateLimitAppError(
                code="rate_limit_exceeded",
                message="Rate limit exceeded",
                details={"limit": 200, "remaining": 0, "reset_at": 1_700_000_050, "retry_after": 17},
            )

        response = client.get("/test-rate-limit")

        assert response.status_code == 429
        assert response.json()["code"] == "rate_limit_exceeded"
        assert response.headers["Retry-After"] == "17"
        assert response.headers["X-RateLimit-Limit"] == "200"
        assert response.headers["X-RateLimit-Remaining"] == "0"
        assert response.headers["X-RateLimit-Reset"] == "1700000050"

    def test_backend_error_returns_500_with_empty_results(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-backend")
        async def test_endpoint():
            raise BackendAppError(
                code="backend_error",
                message="Something went wrong",
                details={"engine": "postgresql"},
            )

        response = client.get("/test-backend")

        assert response.status_code == 500
        data = response.json()
        assert data["code"] == "backend_error"
        assert data["results"] == []
        # Details stay in the logs
        assert "postgresql" not in response.text

    def test_base_app_error_returns_500(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-base")
        async def test_endpoint():
            raise AppError(code="unexpected", message="Something went wrong")

        response = client.get("/test-base")

        assert response.status_code == 500
        assert response.json()["results"] == []

    def test_error_response_format_is_consistent(self, client: TestClient, app_with_handlers: FastAPI):
        @app_with_handlers.get("/test-format")
        async def test_endpoint():
            raise ValidationAppError(code="test", message="test")

        data = client.get("/test-format").json()

        assert set(data) == {"message", "code", "request_id"}


class TestGeneralExceptionHandler:
    """Test fallback handler for unexpected exceptions."""

    def test_unexpected_exception_handler_registered(self, app_with_handlers: FastAPI):
        assert Exception in app_with_handlers.exception_handlers

    def test_general_exception_handler_logic(self):
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/api/search"
        request.method = "GET"

        exc = RuntimeError("Unexpected error: database connection failed")
        response = asyncio.run(general_exception_handler(request, exc))

        data = _body(response)
        assert response.status_code == 500
        assert data["code"] == "internal_server_error"
        assert data["message"] == "Something went wrong"
        assert data["results"] == []
        assert "database connection" not in json.dumps(data)
        assert "request_id" in data

    def test_general_exception_handler_never_leaks_stack_trace(self):
        from app.core.exception_handlers import general_exception_handler

        request = AsyncMock()
        request.url.path = "/api/search"
        request.method = "GET"

        exc = ValueError("Test error with details")
        response = asyncio.run(general_exception_handler(request, exc))

        response_text = json.dumps(_body(response))
        assert "Traceback" not in response_text
        assert "File \"" not in response_text
        assert "ValueError" not in response_text


class TestErrorHandlerIntegration:
    def test_setup_exception_handlers_registers_handlers(self, app_with_handlers: FastAPI):
        assert AppError in app_with_handlers.exception_handlers
        assert Exception in app_with_handlers.exception_handlers

    def test_multiple_handler_setups_does_not_fail(self):
        app = FastAPI()

        setup_exception_handlers(app)
        setup_exception_handlers(app)

        assert AppError in app.exception_handlers
