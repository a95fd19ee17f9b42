"""
Resolver - translates a free-text query into song metadata or a source URL.

Both operations are cache-aside over the shared cache store and independent
of each other. By default there is no coalescing: two requests racing on the
same uncached query both invoke the external tool. Passing
``single_flight=True`` shares one in-flight resolution per cache key instead.
"""

import asyncio
import json
import time
from collections import Counter
from typing import Any, Optional, Type

from tunestream.common.logging import get_logger
from tunestream.core.errors import (
    CommandError,
    LocatorError,
    ResolutionError,
    StoreUnavailable,
)
from tunestream.core.interfaces import CacheStoreProtocol, CommandSpec, ProcessResult, ProcessRunnerProtocol
from tunestream.core.monitoring import (
    record_cache_hit,
    record_cache_miss,
    record_cache_unavailable,
    record_resolution,
)

from .commands import CommandBuilder, validate_source_url
from .models import SongMetadata, StreamDescriptor
from .normalizer import SONG_NAMESPACE, STREAM_NAMESPACE, song_key, stream_key
from .singleflight import SingleFlight

logger = get_logger(__name__)

METADATA_OPERATION = "metadata"
LOCATOR_OPERATION = "locator"

STDERR_TAIL = 300


def _first_line(text: str) -> Optional[str]:
    for line in text.splitlines():
        if line.strip():
            return line.strip()
    return None


class Resolver:
    """Cache-aside resolution of song metadata and stream locators."""

    def __init__(
        self,
        store: CacheStoreProtocol,
        runner: ProcessRunnerProtocol,
        commands: Optional[CommandBuilder] = None,
        metadata_ttl: int = 300,
        stream_ttl: int = 600,
        timeout: Optional[float] = 30.0,
        single_flight: bool = False,
    ):
        """
        Args:
            store: Shared cache store
            runner: Process runner for the search/extraction tool
            commands: Command builder (default: yt-dlp/ffmpeg from PATH)
            metadata_ttl: TTL of ``song:`` entries in seconds
            stream_ttl: TTL of ``stream:`` entries in seconds
            timeout: Deadline for one external invocation in seconds
            single_flight: Coalesce concurrent identical resolutions
        """
        self.store = store
        self.runner = runner
        self.commands = commands or CommandBuilder()
        self.metadata_ttl = metadata_ttl
        self.stream_ttl = stream_ttl
        self.timeout = timeout
        self._flight = SingleFlight() if single_flight else None

        # External invocations per operation
        self.invocations: Counter = Counter()

    @property
    def single_flight(self) -> bool:
        return self._flight is not None

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    async def resolve_metadata(self, query: str) -> SongMetadata:
        """
        Resolve best-match metadata for a query.

        Raises:
            ResolutionError: tool failed, timed out or produced unparsable output
        """
        key = song_key(query)

        cached = await self._cache_get(key, SONG_NAMESPACE)
        if cached is not None:
            try:
                return SongMetadata.from_dict(cached)
            except (KeyError, TypeError, AttributeError, ValueError):
                logger.warning("Ignoring malformed cached metadata", data={"key": key})

        return await self._coalesce(key, lambda: self._fetch_metadata(query, key))

    async def resolve_stream_locator(self, query: str) -> StreamDescriptor:
        """
        Resolve a direct best-audio source URL for a query.

        Raises:
            LocatorError: tool failed, timed out or printed no http(s) URL
        """
        key = stream_key(query)

        cached = await self._cache_get(key, STREAM_NAMESPACE)
        if cached is not None:
            try:
                return StreamDescriptor.from_dict(cached)
            except (KeyError, TypeError, AttributeError):
                logger.warning("Ignoring malformed cached locator", data={"key": key})

        return await self._coalesce(key, lambda: self._fetch_locator(query, key))

    # ------------------------------------------------------------------
    # Cache access (best effort)
    # ------------------------------------------------------------------

    async def _cache_get(self, key: str, namespace: str) -> Optional[Any]:
        try:
            value = await self.store.get(key)
        except StoreUnavailable:
            record_cache_unavailable(namespace, "get")
            return None

        if value is None:
            record_cache_miss(namespace)
            logger.debug("Cache miss", data={"key": key})
        else:
            record_cache_hit(namespace)
            logger.debug("Cache hit", data={"key": key})
        return value

    async def _cache_set(self, key: str, value: Any, ttl: int, namespace: str) -> None:
        try:
            await self.store.set(key, value, ttl)
        except StoreUnavailable:
            record_cache_unavailable(namespace, "set")
            logger.warning("Cache write skipped, store unavailable", data={"key": key})

    async def _coalesce(self, key: str, fn):
        if self._flight is None:
            return await fn()
        return await self._flight.do(key, fn)

    # ------------------------------------------------------------------
    # External invocations
    # ------------------------------------------------------------------

    async def _invoke(
        self,
        operation: str,
        command: CommandSpec,
        error_cls: Type[ResolutionError],
    ) -> ProcessResult:
        self.invocations[operation] += 1
        started = time.perf_counter()

        try:
            result = await self.runner.run(command, timeout=self.timeout)
        except asyncio.TimeoutError:
            record_resolution(operation, "timeout", time.perf_counter() - started)
            raise error_cls(
                f"{operation} resolution timed out",
                data={"operation": operation, "timeout": self.timeout},
            )
        except OSError as e:
            record_resolution(operation, "failure", time.perf_counter() - started)
            raise error_cls(
                f"Could not start {command.program}",
                data={"operation": operation, "program": command.program},
                cause=e,
            )

        if not result.ok:
            record_resolution(operation, "failure", time.perf_counter() - started)
            raise error_cls(
                f"{operation} resolution failed",
                data={
                    "operation": operation,
                    "returncode": result.returncode,
                    "stderr": result.stderr.strip()[-STDERR_TAIL:],
                },
            )

        record_resolution(operation, "success", time.perf_counter() - started)
        return result

    async def _fetch_metadata(self, query: str, key: str) -> SongMetadata:
        try:
            command = self.commands.metadata(query)
        except CommandError as e:
            raise ResolutionError("Query rejected by command builder", cause=e)

        result = await self._invoke(METADATA_OPERATION, command, ResolutionError)

        line = _first_line(result.stdout)
        if line is None:
            raise ResolutionError("No match found", data={"operation": METADATA_OPERATION})

        try:
            info = json.loads(line)
            if not isinstance(info, dict):
                raise TypeError(f"expected object, got {type(info).__name__}")
            metadata = SongMetadata.from_ytdlp(info)
        except (ValueError, TypeError, KeyError, OverflowError) as e:
            raise ResolutionError(
                "Unparsable metadata output",
                data={"operation": METADATA_OPERATION},
                cause=e,
            )

        logger.info("Resolved metadata", data={"key": key, "title": metadata.title})
        await self._cache_set(key, metadata.to_dict(), self.metadata_ttl, SONG_NAMESPACE)
        return metadata

    async def _fetch_locator(self, query: str, key: str) -> StreamDescriptor:
        try:
            command = self.commands.stream_url(query)
        except CommandError as e:
            raise LocatorError("Query rejected by command builder", cause=e)

        result = await self._invoke(LOCATOR_OPERATION, command, LocatorError)

        line = _first_line(result.stdout)
        if line is None:
            raise LocatorError("No source URL produced", data={"operation": LOCATOR_OPERATION})

        try:
            url = validate_source_url(line)
        except CommandError as e:
            raise LocatorError("Tool output is not a source URL", cause=e)

        descriptor = StreamDescriptor(source_url=url)
        logger.info("Resolved stream locator", data={"key": key})
        await self._cache_set(key, descriptor.to_dict(), self.stream_ttl, STREAM_NAMESPACE)
        return descriptor
