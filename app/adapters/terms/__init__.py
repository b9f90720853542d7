"""Term index adapters - one prefix-search implementation per storage engine."""

from app.adapters.terms.base import AbstractOrderedSetStore, Engine, TermIndex
from app.adapters.terms.ordered_set import (
    InMemoryOrderedSetStore,
    OrderedSetTermIndex,
    RedisOrderedSetStore,
)
from app.adapters.terms.relational import RelationalTermIndex

__all__ = [
    "AbstractOrderedSetStore",
    "Engine",
    "InMemoryOrderedSetStore",
    "OrderedSetTermIndex",
    "RedisOrderedSetStore",
    "RelationalTermIndex",
    "TermIndex",
]
