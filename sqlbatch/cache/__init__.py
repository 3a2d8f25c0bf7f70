"""Read-through cache support."""

from sqlbatch.cache._directive import CacheDirective, make_cache_key
from sqlbatch.cache.memory import MemoryCacheBackend
from sqlbatch.protocols import CacheBackend

__all__ = ("CacheBackend", "CacheDirective", "MemoryCacheBackend", "make_cache_key")
