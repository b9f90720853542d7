"""Ordered-set term index (Redis sorted set).

All members live in one sorted set at score 0, so Redis orders them
lexicographically. A prefix query is answered with a rank lookup followed by a
bounded forward scan.
"""

from __future__ import annotations

import bisect
import logging
import threading
from typing import Iterable

from redis.asyncio import Redis

from app.adapters.terms.base import DEFAULT_MAX_RESULTS, AbstractOrderedSetStore
from app.adapters.terms.encoding import COMPLETE_MARKER, is_complete_member, strip_marker

logger = logging.getLogger(__name__)


class RedisOrderedSetStore(AbstractOrderedSetStore):
    """Ordered set backed by a Redis sorted set.

    Attributes:
        key: Name of the sorted set holding the term members.
    """

    def __init__(self, client: Redis, key: str = "terms") -> None:
        self._client = client
        self.key = key

    async def rank_at_or_after(self, value: str) -> int | None:
        # ZLEXCOUNT with an exclusive upper bound counts members < value,
        # which is the rank the first member >= value would occupy.
        async with self._client.pipeline(transaction=False) as pipe:
            pipe.zlexcount(self.key, "-", f"({value}")
            pipe.zcard(self.key)
            below, total = await pipe.execute()

        if below >= total:
            return None
        return int(below)

    async def range_by_rank(self, start: int, stop: int) -> list[str]:
        members = await self._client.zrange(self.key, start, stop)
        return [m.decode() if isinstance(m, bytes) else m for m in members]

    async def add(self, members: Iterable[str]) -> None:
        mapping = {member: 0 for member in members}
        if mapping:
            await self._client.zadd(self.key, mapping, nx=True)


class InMemoryOrderedSetStore(AbstractOrderedSetStore):
    """Ordered set kept in a sorted Python list.

    Python compares str by code point, which matches Redis' byte-wise ordering
    of UTF-8 members.

    Important:
        Per-process only; intended for local development and tests.
    """

    def __init__(self, members: Iterable[str] = ()) -> None:
        self._lock = threading.RLock()
        self._members: list[str] = sorted(set(members))

    def __len__(self) -> int:
        return len(self._members)

    async def rank_at_or_after(self, value: str) -> int | None:
        with self._lock:
            rank = bisect.bisect_left(self._members, value)
            if rank >= len(self._members):
                return None
            return rank

    async def range_by_rank(self, start: int, stop: int) -> list[str]:
        with self._lock:
            return self._members[start : stop + 1]

    async def add(self, members: Iterable[str]) -> None:
        with self._lock:
            merged = set(self._members)
            merged.update(members)
            self._members = sorted(merged)


class OrderedSetTermIndex:
    """Prefix search over an ordered set of encoded members."""

    def __init__(
        self,
        store: AbstractOrderedSetStore,
        *,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        if max_results < 1:
            raise ValueError("max_results must be >= 1")
        self.store = store
        self._max_results = max_results

    async def prefix_search(self, query: str) -> list[str]:
        """Return complete terms starting with ``query`` in ascending order.

        Scans at most ``max_results + 1`` members starting at the rank of the
        first member >= query, and stops at the first member that no longer
        starts with the query: sorted order guarantees nothing after it can
        match. Prefix nodes are skipped; complete terms are returned without
        their marker.

        Args:
            query: Normalized, non-empty query.

        Returns:
            Up to ``max_results`` complete terms.
        """
        if COMPLETE_MARKER in query:
            # Answer as the relational index does (no stored term contains the
            # marker) instead of matching "CAT*" against the encoded member "CAT*".
            return []

        rank = await self.store.rank_at_or_after(query)
        if rank is None:
            return []

        members = await self.store.range_by_rank(rank, rank + self._max_results)

        results: list[str] = []
        for member in members:
            if not member.startswith(query):
                break
            if is_complete_member(member):
                results.append(strip_marker(member))

        logger.debug(
            "terms.ordered_set.scanned",
            extra={"rank": rank, "scanned": len(members), "matched": len(results)},
        )
        # Member order puts "CAT ALOG*" before "CAT*" (space sorts below the
        # marker); sorting the bare terms keeps results ascending.
        results.sort()
        return results[: self._max_results]
