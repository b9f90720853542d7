"""Pydantic schemas for search responses."""

from pydantic import BaseModel, Field


class SearchResponse(BaseModel):
    """Completions for one prefix query."""

    results: list[str] = Field(
        default_factory=list,
        description="Complete terms starting with the normalized query (at most 80).",
    )
    duration: float = Field(
        ...,
        ge=0,
        description="Backend lookup time in milliseconds.",
    )


class ErrorResponse(BaseModel):
    """Error body shared by every non-200 search response."""

    message: str = Field(..., description="Human-readable error message.")
    code: str = Field(..., description="Stable, machine-readable error code.")
    request_id: str | None = Field(None, description="Correlation id of the request.")
    results: list[str] | None = Field(
        None,
        description="Always empty; present on server-side failures.",
    )


class HealthResponse(BaseModel):
    status: str = "ok"
    engines: list[str] = Field(default_factory=list)
