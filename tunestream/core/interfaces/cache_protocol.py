"""
Cache Protocol - Interface for cache store implementations.

Implementations:
- RedisCache (tunestream.core.connectors.redis_cache)
- InMemoryCache (tunestream.core.connectors.inmemory_cache)

Every method may raise StoreUnavailable. Callers treat that as a miss.
"""

from typing import Protocol, Optional, Any, List, runtime_checkable


@runtime_checkable
class CacheStoreProtocol(Protocol):
    """Protocol for async cache stores (DI interface)."""

    max_entries: int

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key, None on miss."""
        ...

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Set JSON-serializable value with TTL in seconds."""
        ...

    async def size(self) -> int:
        """Number of live entries."""
        ...

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        """Keys starting with prefix."""
        ...

    async def flush_all(self) -> None:
        """Remove every entry."""
        ...

    async def memory_usage(self) -> str:
        """Human-readable memory used by the store."""
        ...

    async def ping(self) -> bool:
        """Check the store is reachable."""
        ...

    async def close(self) -> None:
        """Release connections."""
        ...
