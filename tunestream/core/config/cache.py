"""
Cache Factory - Create cache store based on configuration.

Uses factory pattern for dependency injection.
"""

from typing import Optional

from ..interfaces import CacheStoreProtocol
from .settings import CacheBackend, Settings, get_settings


def create_cache_store(
    backend: Optional[CacheBackend] = None,
    settings: Optional[Settings] = None,
    **kwargs
) -> CacheStoreProtocol:
    """
    Factory for cache stores.

    Args:
        backend: Cache backend (default from settings)
        settings: Settings to read defaults from (default: global settings)
        **kwargs: Backend-specific arguments

    Returns:
        CacheStoreProtocol implementation

    Example:
        store = create_cache_store()  # Uses settings
        store = create_cache_store(CacheBackend.REDIS, url="redis://...")
    """
    settings = settings or get_settings()
    backend = backend or settings.cache_backend
    max_entries = kwargs.get('max_entries', settings.cache_max_entries)

    if backend == CacheBackend.REDIS:
        from ..connectors.redis_cache import RedisCache
        url = kwargs.get('url', settings.redis_url)
        if not url:
            raise ValueError("Redis URL required for redis backend")
        return RedisCache(url=url, max_entries=max_entries)

    elif backend == CacheBackend.MEMORY:
        from ..connectors.inmemory_cache import InMemoryCache
        return InMemoryCache(max_entries=max_entries, capacity=kwargs.get('capacity'))

    raise ValueError(f"Unknown cache backend: {backend}")
