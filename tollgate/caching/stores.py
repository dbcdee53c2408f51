"""
Cache stores for the cached clipboard.

A store is a plain key/value cache with no expiry: permission data stays
valid until a write refreshes it. Stores that support tags can flush every
Tollgate entry in one call; the others are refreshed key by key.
"""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from collections import OrderedDict
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from tollgate.config import CACHE_BACKENDS
from tollgate.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Sentinel object to distinguish cache misses from cached None values
_CACHE_MISS = object()


@dataclass
class CacheStats:
    """
    Cache statistics.

    Attributes:
        hits: Number of cache hits.
        misses: Number of cache misses.
        evictions: Number of evicted entries.
        size: Current number of entries.

    Example:
        >>> stats = store.get_stats()
        >>> print(f"Hit rate: {stats.hit_rate:.2%}")
    """

    hits: int = 0
    misses: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total > 0 else 0.0

    @property
    def total_requests(self) -> int:
        return self.hits + self.misses

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "size": self.size,
            "hit_rate": self.hit_rate,
            "total_requests": self.total_requests,
        }


class CacheStore(ABC):
    """
    Abstract base class for cache stores.

    Subclasses must be safe to share between threads.
    """

    @abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the cached value, or ``default`` on a miss."""
        ...

    @abstractmethod
    def forever(self, key: str, value: Any) -> None:
        """Store a value with no expiry."""
        ...

    @abstractmethod
    def forget(self, key: str) -> bool:
        """Remove a key. Returns True if it was present."""
        ...

    @abstractmethod
    def flush(self) -> None:
        """Remove every entry."""
        ...

    def has(self, key: str) -> bool:
        return self.get(key, _CACHE_MISS) is not _CACHE_MISS

    def remember_forever(self, key: str, callback: Callable[[], Any]) -> Any:
        """
        Return the cached value, computing and storing it on a miss.

        Example:
            >>> roles = store.remember_forever("roles-users-1", lambda: load_roles(user))
        """
        value = self.get(key, _CACHE_MISS)
        if value is not _CACHE_MISS:
            logger.debug(f"Cache hit: {key}")
            return value

        logger.debug(f"Cache miss: {key}")
        value = callback()
        self.forever(key, value)
        return value


class TaggableStore(CacheStore):
    """A store whose entries can be grouped under tags and flushed together."""

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._tagged: dict[str, set[str]] = {}

    def tags(self, *names: str) -> TaggedCache:
        return TaggedCache(self, names)

    def _track(self, names: tuple[str, ...], key: str) -> None:
        with self._lock:
            for name in names:
                self._tagged.setdefault(name, set()).add(key)

    def _flush_tags(self, names: tuple[str, ...]) -> int:
        with self._lock:
            keys: set[str] = set()
            for name in names:
                keys |= self._tagged.pop(name, set())
            for key in keys:
                self.forget(key)
        return len(keys)


class TaggedCache(CacheStore):
    """
    A view of a taggable store where every key is namespaced by its tags.

    Flushing a tagged cache removes only the entries written through it.
    """

    def __init__(self, store: TaggableStore, names: tuple[str, ...]) -> None:
        self.store = store
        self.names = tuple(names)

    def _key(self, key: str) -> str:
        return f"{'|'.join(self.names)}:{key}"

    def get(self, key: str, default: Any = None) -> Any:
        return self.store.get(self._key(key), default)

    def forever(self, key: str, value: Any) -> None:
        tagged_key = self._key(key)
        self.store.forever(tagged_key, value)
        self.store._track(self.names, tagged_key)

    def forget(self, key: str) -> bool:
        return self.store.forget(self._key(key))

    def flush(self) -> None:
        removed = self.store._flush_tags(self.names)
        logger.debug(f"Flushed {removed} entries tagged {list(self.names)}")


class ArrayStore(TaggableStore):
    """
    In-process dictionary store.

    Example:
        >>> store = ArrayStore()
        >>> store.tags("tollgate").forever("roles-users-1", [])
        >>> store.tags("tollgate").flush()
    """

    def __init__(self) -> None:
        super().__init__()
        self._data: dict[str, Any] = {}

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def forever(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, _CACHE_MISS) is not _CACHE_MISS

    def flush(self) -> None:
        with self._lock:
            self._data.clear()
            self._tagged.clear()

    def __len__(self) -> int:
        return len(self._data)


class NullStore(TaggableStore):
    """A store that never keeps anything; every read is a miss."""

    def _track(self, names: tuple[str, ...], key: str) -> None:
        return None

    def get(self, key: str, default: Any = None) -> Any:
        return default

    def forever(self, key: str, value: Any) -> None:
        return None

    def forget(self, key: str) -> bool:
        return False

    def flush(self) -> None:
        return None


class LRUStore(CacheStore):
    """
    Bounded least-recently-used store.

    Does not support tags, so a full refresh forgets the known keys one
    by one.

    Example:
        >>> store = LRUStore(max_size=500)
        >>> store.forever("key", "value")
        >>> store.get_stats().hits
        0
    """

    def __init__(self, max_size: int = 1000) -> None:
        if max_size < 1:
            raise ConfigurationError(
                config_key="cache_size",
                expected="a positive integer",
                received=max_size,
            )
        self.max_size = max_size
        self._data: OrderedDict[str, Any] = OrderedDict()
        self._lock = threading.RLock()
        self._stats = CacheStats()

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            if key not in self._data:
                self._stats.misses += 1
                return default

            self._stats.hits += 1
            self._data.move_to_end(key)
            return self._data[key]

    def forever(self, key: str, value: Any) -> None:
        with self._lock:
            if key in self._data:
                self._data.move_to_end(key)
            else:
                while len(self._data) >= self.max_size:
                    evicted, _ = self._data.popitem(last=False)
                    self._stats.evictions += 1
                    logger.debug(f"Evicted cache entry: {evicted}")
            self._data[key] = value

    def forget(self, key: str) -> bool:
        with self._lock:
            return self._data.pop(key, _CACHE_MISS) is not _CACHE_MISS

    def flush(self) -> None:
        with self._lock:
            self._data.clear()

    def keys(self) -> list[str]:
        with self._lock:
            return list(self._data)

    def get_stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                evictions=self._stats.evictions,
                size=len(self._data),
            )

    def __len__(self) -> int:
        return len(self._data)


def make_store(backend: str, size: int = 1000) -> CacheStore | None:
    """
    Build a store for a configured backend name.

    Returns None for ``"none"``, meaning checks run uncached.
    """
    if backend not in CACHE_BACKENDS:
        raise ConfigurationError(
            config_key="cache",
            expected=f"one of {list(CACHE_BACKENDS)}",
            received=backend,
        )
    if backend == "none":
        return None
    if backend == "lru":
        return LRUStore(size)
    if backend == "null":
        return NullStore()
    return ArrayStore()
