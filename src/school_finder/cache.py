import time
from typing import Dict, Generic, Hashable, Optional, Tuple, TypeVar


K = TypeVar("K", bound=Hashable)
V = TypeVar("V")


class ResultCache(Generic[K, V]):
    """In-process result cache with explicit invalidation.

    Entries live until invalidated, cleared, evicted by ``max_entries`` or,
    when ``ttl_s`` is set, until they expire.
    """

    def __init__(self, max_entries=512, ttl_s=None, enabled=True, clock=time.monotonic):
        self.max_entries = max_entries
        self.ttl_s = ttl_s
        self.enabled = enabled
        self._clock = clock
        self._entries: Dict[K, Tuple[Optional[float], V]] = {}
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    def __len__(self):
        return len(self._entries)

    def __contains__(self, key):
        return self._live_entry(key) is not None

    def _live_entry(self, key):
        entry = self._entries.get(key)
        if entry is None:
            return None
        expires_at, _ = entry
        if expires_at is not None and expires_at < self._clock():
            self._entries.pop(key, None)
            return None
        return entry

    def get(self, key: K) -> Optional[V]:
        if not self.enabled:
            return None
        entry = self._live_entry(key)
        if entry is None:
            self._stats["misses"] += 1
            return None
        self._stats["hits"] += 1
        return entry[1]

    def put(self, key: K, value: V) -> None:
        if not self.enabled:
            return
        if key not in self._entries and len(self._entries) >= self.max_entries:
            # dicts keep insertion order; the first key is the oldest entry
            oldest_key = next(iter(self._entries))
            self._entries.pop(oldest_key, None)
            self._stats["evictions"] += 1
        expires_at = self._clock() + self.ttl_s if self.ttl_s is not None else None
        self._entries.pop(key, None)
        self._entries[key] = (expires_at, value)

    def invalidate(self, key: K) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()
        self._stats = {"hits": 0, "misses": 0, "evictions": 0}

    def stats(self):
        return dict(self._stats)
