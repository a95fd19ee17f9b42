"""
Connectors - Cache store implementations.

- redis_cache.py: Redis-based (production, shared between workers)
- inmemory_cache.py: In-memory (development, unit tests)
"""

from .redis_cache import RedisCache
from .inmemory_cache import InMemoryCache, CacheEntry

__all__ = [
    "RedisCache",
    "InMemoryCache",
    "CacheEntry",
]
