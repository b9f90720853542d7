"""OpenAPI metadata customization.

Adds tag descriptions to the generated schema, keeping documentation concerns
out of the app factory.
"""

from __future__ import annotations

from typing import Any, Dict

from fastapi import FastAPI

TAGS_METADATA = [
    {
        "name": "Search",
        "description": "Prefix completions served from Redis or PostgreSQL.",
    },
    {
        "name": "Health",
        "description": "Liveness checks.",
    },
]


def apply_openapi_customizations(app: FastAPI) -> None:
    """Patch FastAPI's OpenAPI generation to add tag metadata."""

    original_openapi = app.openapi

    def custom_openapi() -> Dict[str, Any]:
        schema = original_openapi()

        tags = schema.setdefault("tags", [])
        existing_tag_names = {t.get("name") for t in tags}
        for tag in TAGS_METADATA:
            if tag["name"] not in existing_tag_names:
                tags.append(tag)

        return schema

    app.openapi = custom_openapi  # type: ignore[assignment]
