"""In-process idempotency cache.

The cache is a fast path only; the durable event store stays authoritative, so
losing entries (restart, eviction, another replica) never causes a double apply.
"""

from __future__ import annotations

import threading
from collections import OrderedDict


class InMemoryIdempotencyCache:
    """Bounded LRU set of recently handled event hashes."""

    def __init__(self, max_entries: int = 10_000) -> None:
        if max_entries <= 0:
            raise ValueError("max_entries must be positive")
        self._max_entries = max_entries
        self._entries: OrderedDict[str, None] = OrderedDict()
        self._lock = threading.Lock()

    def seen(self, key: str) -> bool:
        with self._lock:
            if key not in self._entries:
                return False
            self._entries.move_to_end(key)
            return True

    def remember(self, key: str) -> None:
        with self._lock:
            self._entries[key] = None
            self._entries.move_to_end(key)
            while len(self._entries) > self._max_entries:
                self._entries.popitem(last=False)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


def build_idempotency_cache(max_entries: int) -> InMemoryIdempotencyCache | None:
    """Return a cache of ``max_entries`` or None when caching is disabled (0)."""

    return InMemoryIdempotencyCache(max_entries) if max_entries > 0 else None
