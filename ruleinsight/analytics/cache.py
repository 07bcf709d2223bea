"""Bounded in-memory cache with TTL expiry and capacity eviction."""

import time
from collections import OrderedDict
from typing import Any, Callable, Generic, Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class CacheBackend(Protocol[T]):
    """Interface of the caches used by analytics and impact analysis."""

    def get(self, key: str) -> T | None:
        """Get a value if present and not expired."""
        ...

    def set(self, key: str, value: T) -> None:
        """Store a value."""
        ...

    def invalidate(self, key: str) -> bool:
        """Remove one key. Returns True if it was present."""
        ...

    def clear(self) -> int:
        """Remove every entry. Returns the number removed."""
        ...

    @property
    def stats(self) -> dict[str, Any]:
        """Size, capacity, TTL, hits, misses and hit rate."""
        ...


class TTLCache(Generic[T]):
    """Insertion-ordered cache evicting the oldest entry when full.

    Entries older than ``ttl_seconds`` are treated as absent and dropped on
    access. Not thread-safe; async callers serialise access with a lock.

    Args:
        maxsize: Maximum number of entries
        ttl_seconds: Entry lifetime, 0 disables caching
        clock: Monotonic time source, seconds
    """

    def __init__(
        self,
        maxsize: int = 1024,
        ttl_seconds: float = 300,
        clock: Callable[[], float] = time.monotonic,
    ):
        if maxsize < 1:
            raise ValueError("maxsize must be at least 1")
        self._maxsize = maxsize
        self._ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, T]] = OrderedDict()
        self._hits = 0
        self._misses = 0

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None

        stored_at, value = entry
        if self._clock() - stored_at >= self._ttl_seconds:
            del self._entries[key]
            self._misses += 1
            return None

        self._hits += 1
        return value

    def set(self, key: str, value: T) -> None:
        if self._ttl_seconds <= 0:
            return
        if key in self._entries:
            del self._entries[key]
        self._entries[key] = (self._clock(), value)
        while len(self._entries) > self._maxsize:
            self._entries.popitem(last=False)

    def invalidate(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def invalidate_prefix(self, prefix: str) -> int:
        """Remove every key starting with ``prefix``."""
        keys = [key for key in self._entries if key.startswith(prefix)]
        for key in keys:
            del self._entries[key]
        return len(keys)

    def clear(self) -> int:
        count = len(self._entries)
        self._entries.clear()
        return count

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries

    @property
    def stats(self) -> dict[str, Any]:
        lookups = self._hits + self._misses
        return {
            "size": len(self._entries),
            "maxsize": self._maxsize,
            "ttl_seconds": self._ttl_seconds,
            "hits": self._hits,
            "misses": self._misses,
            "hit_rate": self._hits / lookups if lookups else 0.0,
        }
