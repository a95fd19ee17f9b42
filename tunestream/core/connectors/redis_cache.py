"""
RedisCache - Redis-based cache implementation for production.

Uses the asyncio client shipped with the redis package.
"""

from typing import Optional, Any, List
import json

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from tunestream.common.logging import get_logger
from ..errors import StoreUnavailable

logger = get_logger(__name__)


class RedisCache:
    """
    Redis-based cache implementation.

    Implements CacheStoreProtocol for production use.
    Eviction beyond ``max_entries`` is left to the server's maxmemory-policy;
    this class only reports when the soft capacity is exceeded.
    """

    def __init__(
        self,
        url: str,
        max_entries: int = 1000,
        client: Optional[aioredis.Redis] = None,
        socket_timeout: float = 5.0,
    ):
        """
        Initialize Redis cache.

        Args:
            url: Redis connection URL (redis://host:port/db)
            max_entries: Soft capacity, reported but not enforced
            client: Pre-built client (tests)
            socket_timeout: Per-command socket timeout in seconds
        """
        self.url = url
        self.max_entries = max_entries
        self.client = client or aioredis.from_url(
            url,
            decode_responses=True,
            socket_timeout=socket_timeout,
            socket_connect_timeout=socket_timeout,
        )
        logger.info("Redis cache initialized", data={"url": url, "max_entries": max_entries})

    def _unavailable(self, operation: str, error: Exception) -> StoreUnavailable:
        return StoreUnavailable(
            f"Redis {operation} failed",
            data={"operation": operation},
            cause=error,
        )

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key."""
        try:
            value = await self.client.get(key)
        except (RedisError, OSError) as e:
            raise self._unavailable("get", e)
        if value is None:
            return None
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            logger.warning("Discarding undecodable cache value", data={"key": key})
            return None

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Set value with TTL in seconds."""
        serialized = json.dumps(value, default=str)
        try:
            await self.client.set(key, serialized, ex=ttl)
        except (RedisError, OSError) as e:
            raise self._unavailable("set", e)
        await self._check_capacity()

    async def _check_capacity(self) -> None:
        if not self.max_entries:
            return
        size = await self.size()
        if size > self.max_entries:
            logger.warning(
                "Cache store over soft capacity",
                data={"size": size, "max_entries": self.max_entries},
            )

    async def size(self) -> int:
        """Get number of keys (DBSIZE)."""
        try:
            return int(await self.client.dbsize())
        except (RedisError, OSError) as e:
            raise self._unavailable("dbsize", e)

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        """Get all keys with prefix (SCAN, never KEYS)."""
        try:
            return [key async for key in self.client.scan_iter(match=f"{prefix}*", count=500)]
        except (RedisError, OSError) as e:
            raise self._unavailable("scan", e)

    async def flush_all(self) -> None:
        """Clear the whole database."""
        try:
            await self.client.flushdb()
        except (RedisError, OSError) as e:
            raise self._unavailable("flushdb", e)

    async def memory_usage(self) -> str:
        """Memory used by the server (INFO memory)."""
        try:
            info = await self.client.info("memory")
        except (RedisError, OSError) as e:
            raise self._unavailable("info", e)
        return str(info.get("used_memory_human", "unknown"))

    async def ping(self) -> bool:
        """Check Redis connection."""
        try:
            return bool(await self.client.ping())
        except (RedisError, OSError):
            return False

    async def close(self) -> None:
        """Close the connection pool."""
        try:
            await self.client.aclose()
        except (RedisError, OSError) as e:
            logger.warning(f"Redis close error: {e}")
        logger.info("Redis cache closed")
