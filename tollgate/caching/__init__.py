"""
Cache stores for Tollgate.

Example:
    >>> from tollgate.caching import ArrayStore, LRUStore
    >>>
    >>> store = ArrayStore()
    >>> store.tags("tollgate").forever("roles-users-1", [])
    >>>
    >>> lru = LRUStore(max_size=100)
    >>> print(f"Hit rate: {lru.get_stats().hit_rate:.2%}")
"""

from tollgate.caching.stores import (
    ArrayStore,
    CacheStats,
    CacheStore,
    LRUStore,
    NullStore,
    TaggableStore,
    TaggedCache,
    make_store,
)

__all__ = [
    "ArrayStore",
    "CacheStats",
    "CacheStore",
    "LRUStore",
    "NullStore",
    "TaggableStore",
    "TaggedCache",
    "make_store",
]
