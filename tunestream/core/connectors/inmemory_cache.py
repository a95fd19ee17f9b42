"""
InMemoryCache - In-memory cache implementation for development and unit tests.

Simple dict-based cache without persistence.
"""

import json
import time
from collections import OrderedDict
from dataclasses import dataclass
from typing import Optional, Any, Callable, List

from tunestream.common.logging import get_logger

logger = get_logger(__name__)


@dataclass
class CacheEntry:
    """Cache entry with expiration on the store's clock."""
    key: str
    value: str  # JSON text
    expires_at: float

    def is_expired(self, now: float) -> bool:
        """Check if entry is expired."""
        return now >= self.expires_at


def _human_bytes(size: int) -> str:
    value = float(size)
    for unit in ("B", "K", "M", "G"):
        if value < 1024 or unit == "G":
            return f"{value:.2f}{unit}" if unit != "B" else f"{int(value)}B"
        value /= 1024
    return f"{value:.2f}G"


class InMemoryCache:
    """
    In-memory cache implementation.

    Implements CacheStoreProtocol. Values are stored as JSON text so callers
    get the same copy semantics as with Redis. No persistence - data lost on
    restart.

    ``max_entries`` is the soft capacity that is only reported.
    ``capacity`` bounds the backing dict itself; once reached the least
    recently used entry is evicted, as a Redis server with an LRU
    maxmemory-policy would.
    """

    def __init__(
        self,
        max_entries: int = 1000,
        capacity: Optional[int] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.max_entries = max_entries
        self.capacity = capacity
        self._clock = clock
        self._store: "OrderedDict[str, CacheEntry]" = OrderedDict()

    def _purge_expired(self) -> None:
        now = self._clock()
        expired = [k for k, entry in self._store.items() if entry.is_expired(now)]
        for key in expired:
            del self._store[key]

    async def get(self, key: str) -> Optional[Any]:
        """Get value by key."""
        entry = self._store.get(key)
        if entry is None:
            return None
        if entry.is_expired(self._clock()):
            del self._store[key]
            return None
        self._store.move_to_end(key)
        return json.loads(entry.value)

    async def set(self, key: str, value: Any, ttl: int) -> None:
        """Set value with TTL in seconds."""
        serialized = json.dumps(value, default=str)
        self._store[key] = CacheEntry(key=key, value=serialized, expires_at=self._clock() + ttl)
        self._store.move_to_end(key)

        if self.capacity is not None:
            while len(self._store) > self.capacity:
                evicted, _ = self._store.popitem(last=False)
                logger.debug("Evicted least recently used entry", data={"key": evicted})

        if self.max_entries and len(self._store) > self.max_entries:
            self._purge_expired()
            if len(self._store) > self.max_entries:
                logger.warning(
                    "Cache store over soft capacity",
                    data={"size": len(self._store), "max_entries": self.max_entries},
                )

    async def size(self) -> int:
        """Get number of live entries."""
        self._purge_expired()
        return len(self._store)

    async def keys_with_prefix(self, prefix: str) -> List[str]:
        """Get all non-expired keys starting with prefix."""
        self._purge_expired()
        return [k for k in self._store if k.startswith(prefix)]

    async def flush_all(self) -> None:
        """Clear all cache."""
        self._store.clear()

    async def memory_usage(self) -> str:
        """Approximate bytes held by keys and serialized values."""
        self._purge_expired()
        total = sum(len(k) + len(entry.value) for k, entry in self._store.items())
        return _human_bytes(total)

    async def ping(self) -> bool:
        return True

    async def close(self) -> None:
        self._store.clear()
