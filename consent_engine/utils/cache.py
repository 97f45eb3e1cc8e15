"""
In-Memory TTL Cache

Thread-safe LRU cache with per-entry expiry, shared by all requests in a
process. Used for region resolutions keyed by hashed client IP.
"""

import threading
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Any


@dataclass
class CacheStats:
    """Cache statistics."""

    hits: int = 0
    misses: int = 0
    sets: int = 0
    evictions: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        if total == 0:
            return 0.0
        return self.hits / total * 100


class TTLCache:
    """
    LRU cache whose entries expire after a fixed number of seconds.

    Expired entries are dropped lazily on read. When the cache is full the
    least recently used entry is evicted.
    """

    def __init__(self, max_size: int = 10000, ttl: int = 3600, clock=time.monotonic):
        self._cache: OrderedDict[str, tuple[Any, float]] = OrderedDict()
        self._max_size = max_size
        self._ttl = ttl
        self._clock = clock
        self._lock = threading.Lock()
        self._stats = CacheStats()

    def get(self, key: str) -> Any | None:
        """Return the cached value, or None if missing or expired."""
        with self._lock:
            entry = self._cache.get(key)
            if entry is None:
                self._stats.misses += 1
                return None

            value, expires_at = entry
            if self._clock() >= expires_at:
                del self._cache[key]
                self._stats.misses += 1
                return None

            self._cache.move_to_end(key)
            self._stats.hits += 1
            return value

    def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        expires_at = self._clock() + (ttl if ttl is not None else self._ttl)
        with self._lock:
            if key in self._cache:
                self._cache.move_to_end(key)
            self._cache[key] = (value, expires_at)

            while len(self._cache) > self._max_size:
                self._cache.popitem(last=False)
                self._stats.evictions += 1

            self._stats.sets += 1

    def delete(self, key: str) -> bool:
        with self._lock:
            return self._cache.pop(key, None) is not None

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        return len(self._cache)

    def get_stats(self) -> dict:
        """Get cache statistics."""
        with self._lock:
            return {
                "size": len(self._cache),
                "max_size": self._max_size,
                "ttl": self._ttl,
                "hits": self._stats.hits,
                "misses": self._stats.misses,
                "evictions": self._stats.evictions,
                "hit_rate": f"{self._stats.hit_rate:.2f}%",
            }
