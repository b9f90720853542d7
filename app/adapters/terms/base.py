"""Term index interfaces.

The dispatcher depends only on the ``TermIndex`` capability; each storage
engine provides one implementation and the dispatcher picks it from a lookup
table at request time.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum
from typing import Iterable, Protocol

DEFAULT_MAX_RESULTS = 80


class Engine(str, Enum):
    """Names of the supported term-storage engines (the ``engine`` query value)."""

    REDIS = "redis"
    POSTGRESQL = "postgresql"


class TermIndex(Protocol):
    """Capability shared by every term index."""

    async def prefix_search(self, query: str) -> list[str]:
        """Return complete terms starting with an already-normalized query."""
        ...


class AbstractOrderedSetStore(ABC):
    """Globally ordered set of encoded term members.

    Members are ordered lexicographically by their full string value.
    """

    @abstractmethod
    async def rank_at_or_after(self, value: str) -> int | None:
        """Return the 0-based rank of the first member >= value.

        Returns:
            The rank, or None when every member sorts before ``value``.
        """
        raise NotImplementedError

    @abstractmethod
    async def range_by_rank(self, start: int, stop: int) -> list[str]:
        """Return members with rank in ``[start, stop]`` (inclusive)."""
        raise NotImplementedError

    @abstractmethod
    async def add(self, members: Iterable[str]) -> None:
        """Insert members; existing members are left unchanged."""
        raise NotImplementedError
