"""In-memory cache of client identities known to be over their rate limit.

Used by the Redis rate limiter to reject repeat offenders without a network
round trip until their bucket resets. The cache is advisory: an empty or
evicted cache only costs an extra Redis call, never a wrong admission.
"""

from __future__ import annotations

import logging
import threading
from collections import OrderedDict

logger = logging.getLogger(__name__)


class EphemeralBlockCache:
    """Thread-safe map of blocked identifiers to their reset time, with LRU eviction.

    Attributes:
        max_entries: Maximum number of blocked identifiers kept (None for unlimited).
    """

    def __init__(self, max_entries: int | None = 10_000) -> None:
        self._max_entries = max_entries
        self._store: OrderedDict[str, int] = OrderedDict()
        self._lock = threading.RLock()
        self._hits = 0
        self._evictions = 0

    def __repr__(self) -> str:  # pragma: no cover - representation only
        return (
            f"EphemeralBlockCache(max_entries={self._max_entries}, "
            f"size={len(self._store)}, hits={self._hits}, evictions={self._evictions})"
        )

    def blocked_until(self, key: str, now_ms: int) -> int | None:
        """Return the reset time (epoch ms) if ``key`` is still blocked.

        Expired entries are dropped on read.
        """

        with self._lock:
            reset_at_ms = self._store.get(key)
            if reset_at_ms is None:
                return None

            if reset_at_ms <= now_ms:
                self._evict_single(key)
                return None

            self._hits += 1
            self._store.move_to_end(key)
            return reset_at_ms

    def block(self, key: str, reset_at_ms: int) -> None:
        """Remember ``key`` as blocked until ``reset_at_ms``."""

        with self._lock:
            self._store[key] = reset_at_ms
            self._store.move_to_end(key)
            self._evict_if_over_capacity_locked()

            logger.debug(
                "ephemeral_cache.block",
                extra={"size": len(self._store), "reset_at_ms": reset_at_ms},
            )

    def clear(self) -> None:
        """Remove all entries and reset counters."""

        with self._lock:
            self._store.clear()
            self._hits = 0
            self._evictions = 0

    def stats(self) -> dict[str, int | None]:
        with self._lock:
            return {
                "max_entries": self._max_entries,
                "entries": len(self._store),
                "hits": self._hits,
                "evictions": self._evictions,
            }

    def _evict_single(self, key: str) -> None:
        if key in self._store:
            self._store.pop(key, None)
            self._evictions += 1

    def _evict_if_over_capacity_locked(self) -> None:
        if self._max_entries is None:
            return

        while len(self._store) > self._max_entries:
            # popitem(last=False) removes the least recently used entry
            self._store.popitem(last=False)
            self._evictions += 1
