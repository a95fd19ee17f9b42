"""
Cache Admin - status, pre-warming and flushing of the shared cache.
"""

import asyncio
from typing import Any, List, Optional

from tunestream.common.logging import get_logger
from tunestream.core.errors import TuneStreamError, ValidationError
from tunestream.core.interfaces import AnalyticsProtocol, CacheStoreProtocol
from tunestream.core.monitoring import cache_entries, prewarm_duration_seconds, track_duration

from . import analytics as events
from .analytics import LoggingAnalytics
from .models import CacheStatus, PrewarmResult
from .normalizer import SONG_NAMESPACE, STREAM_NAMESPACE
from .resolver import Resolver
from .service import validate_query

logger = get_logger(__name__)

DEFAULT_PREWARM_CONCURRENCY = 4


class CacheAdmin:
    """Operational endpoints over the cache store."""

    def __init__(
        self,
        store: CacheStoreProtocol,
        resolver: Resolver,
        ttl: int = 300,
        stream_ttl: int = 600,
        analytics: Optional[AnalyticsProtocol] = None,
        concurrency: int = DEFAULT_PREWARM_CONCURRENCY,
    ):
        self.store = store
        self.resolver = resolver
        self.ttl = ttl
        self.stream_ttl = stream_ttl
        self.analytics = analytics or LoggingAnalytics()
        self.concurrency = max(1, concurrency)

    async def status(self) -> CacheStatus:
        """
        Aggregate store statistics.

        Raises:
            StoreUnavailable: the store could not be reached
        """
        db_size = await self.store.size()
        memory = await self.store.memory_usage()
        songs = len(await self.store.keys_with_prefix(f"{SONG_NAMESPACE}:"))
        streams = len(await self.store.keys_with_prefix(f"{STREAM_NAMESPACE}:"))

        cache_entries.labels(namespace=SONG_NAMESPACE).set(songs)
        cache_entries.labels(namespace=STREAM_NAMESPACE).set(streams)

        max_entries = self.store.max_entries
        return CacheStatus(
            db_size=db_size,
            memory_usage=memory,
            song_entries=songs,
            stream_entries=streams,
            max_entries=max_entries,
            ttl=self.ttl,
            stream_ttl=self.stream_ttl,
            over_capacity=bool(max_entries) and db_size > max_entries,
        )

    @track_duration(prewarm_duration_seconds)
    async def prewarm(self, queries: List[Any]) -> List[PrewarmResult]:
        """
        Resolve metadata and locator for every query.

        Returns one result per input, in input order. A failing query never
        stops the others. At most ``concurrency`` queries resolve at a time.
        """
        logger.info("Pre-warming cache", data={"count": len(queries)})
        self.analytics.track(events.PREWARM_REQUESTED, None, {"count": len(queries)})

        limit = asyncio.Semaphore(self.concurrency)

        async def bounded(query: Any) -> PrewarmResult:
            async with limit:
                return await self._prewarm_one(query)

        results = await asyncio.gather(*(bounded(q) for q in queries))

        succeeded = sum(1 for r in results if r.success)
        logger.info(
            "Pre-warm finished",
            data={"succeeded": succeeded, "failed": len(results) - succeeded},
        )
        return list(results)

    async def _prewarm_one(self, query: Any) -> PrewarmResult:
        try:
            text = validate_query(query)
        except ValidationError as e:
            return PrewarmResult(query=query, success=False, error=e.message)

        outcomes = await asyncio.gather(
            self.resolver.resolve_metadata(text),
            self.resolver.resolve_stream_locator(text),
            return_exceptions=True,
        )
        for outcome in outcomes:
            if isinstance(outcome, BaseException) and not isinstance(outcome, Exception):
                # Cancellation and interpreter exit
                raise outcome
            if isinstance(outcome, TuneStreamError):
                return PrewarmResult(query=query, success=False, error=outcome.message)
            if isinstance(outcome, Exception):
                logger.error(
                    "Unexpected pre-warm failure",
                    data={"query": text, "error_type": type(outcome).__name__, "error": str(outcome)},
                )
                return PrewarmResult(query=query, success=False, error=str(outcome) or type(outcome).__name__)
        return PrewarmResult(query=query, success=True)

    async def clear(self) -> None:
        """
        Remove every cache entry.

        Raises:
            StoreUnavailable: the store could not be reached
        """
        await self.store.flush_all()
        logger.info("Cache cleared")
        self.analytics.track(events.CACHE_CLEARED, None)
