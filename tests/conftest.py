"""Pytest configuration and fixtures shared across all test modules.

This file is automatically loaded by pytest before running any tests.
Environment defaults are set before any app import so settings never point
at a real Redis or PostgreSQL instance.
"""

import asyncio
import os

# CRITICAL: Set these before any imports that might load settings
os.environ["APP_ENV"] = "testing"
os.environ.setdefault("APP_RATE_LIMIT_BACKEND", "memory")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import pytest

from app.adapters.terms.ordered_set import InMemoryOrderedSetStore, OrderedSetTermIndex
from app.services.term_loader import TermLoader


@pytest.fixture
def sample_terms() -> list[str]:
    return [
        "Cat",
        "Catalog",
        "Caterpillar",
        "Dog",
        "Dogma",
        "Canada",
        "Cambodia",
        "Cameroon",
        "Chad",
        "Chile",
        "China",
    ]


@pytest.fixture
def ordered_store(sample_terms: list[str]) -> InMemoryOrderedSetStore:
    """In-memory ordered set loaded with ``sample_terms``."""
    store = InMemoryOrderedSetStore()
    asyncio.run(TermLoader(ordered_set=store).load(sample_terms))
    return store


@pytest.fixture
def ordered_index(ordered_store: InMemoryOrderedSetStore) -> OrderedSetTermIndex:
    return OrderedSetTermIndex(ordered_store)


@pytest.fixture
def sqlite_url(tmp_path) -> str:
    """Async SQLite URL for a throwaway relational term index."""
    return f"sqlite+aiosqlite:///{tmp_path / 'terms.db'}"
