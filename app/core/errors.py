"""Application-level exception types.

This module defines the search error taxonomy used across services/adapters,
enabling consistent error handling, logging, and API responses.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, NotRequired, TypedDict


class ErrorDetails(TypedDict, total=False):
    """Structured error context for observability and clients."""

    hint: str
    engine: str
    supported_engines: list[str]
    limit: int
    remaining: int
    reset_at: int
    retry_after: int
    request_id: str
    context: NotRequired[dict[str, Any]]


@dataclass
class AppError(Exception):
    """Base error for application/domain failures.

    Attributes:
        code: Stable, machine-readable error code.
        message: Human-readable error message.
        details: Optional structured details for debugging/observability.
    """

    code: str
    message: str
    details: ErrorDetails | None = None

    def __post_init__(self) -> None:
        # Populate Exception args so str(error) is useful in logs/tracebacks.
        super().__init__(self.message)


class ValidationAppError(AppError):
    """Raised when the query or engine selector is invalid."""


class RateLimitAppError(AppError):
    """Raised when a client identity exceeds its request budget."""


class BackendAppError(AppError):
    """Raised when a term-storage backend fails during a lookup."""
