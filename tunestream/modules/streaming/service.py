"""
Streaming Service - routes metadata and stream requests.

HTTP-agnostic: the API layer turns a StreamPlan into a response and maps
errors to status codes.
"""

import asyncio
from typing import Any, Dict, Optional

from tunestream.common.logging import get_logger, set_query
from tunestream.core.errors import LocatorError, ResolutionError, TranscodeError, ValidationError
from tunestream.core.interfaces import AnalyticsProtocol

from . import analytics as events
from .analytics import LoggingAnalytics
from .commands import MAX_QUERY_LENGTH
from .models import SongMetadata, StreamPlan
from .resolver import Resolver
from .transcoder import TranscodePipeline

logger = get_logger(__name__)

TITLE_HEADER = "X-Song-Title"
DURATION_HEADER = "X-Song-Duration"
ARTIST_HEADER = "X-Song-Artist"


def header_safe(value: str) -> str:
    """Make a value safe for an HTTP header (single line, latin-1, no controls)."""
    value = " ".join(str(value).split())
    value = "".join(ch for ch in value if ch >= " " and ch != "\x7f")
    return value.encode("latin-1", errors="replace").decode("latin-1")


def metadata_headers(metadata: SongMetadata) -> Dict[str, str]:
    headers = {
        TITLE_HEADER: header_safe(metadata.title),
        DURATION_HEADER: str(metadata.duration_seconds),
    }
    if metadata.artist:
        headers[ARTIST_HEADER] = header_safe(metadata.artist)
    return headers


def validate_query(query: Any) -> str:
    """
    Check a raw ``q`` parameter.

    Raises:
        ValidationError: missing, empty, whitespace-only or too long
    """
    if query is None:
        raise ValidationError("Missing query parameter 'q'")
    if not isinstance(query, str) or not query.strip():
        raise ValidationError("Query parameter 'q' must not be empty")
    query = query.strip()
    if len(query) > MAX_QUERY_LENGTH:
        raise ValidationError(
            "Query parameter 'q' is too long",
            data={"length": len(query), "max": MAX_QUERY_LENGTH},
        )
    return query


class StreamingService:
    """Metadata lookups and stream setup for one query at a time."""

    def __init__(
        self,
        resolver: Resolver,
        pipeline: TranscodePipeline,
        analytics: Optional[AnalyticsProtocol] = None,
    ):
        self.resolver = resolver
        self.pipeline = pipeline
        self.analytics = analytics or LoggingAnalytics()

    async def handle_metadata(self, query: Any) -> SongMetadata:
        """
        Resolve metadata for ``GET /metadata``.

        Raises:
            ValidationError: bad query
            ResolutionError: the search tool failed
        """
        query = validate_query(query)
        set_query(query)

        try:
            metadata = await self.resolver.resolve_metadata(query)
        except ResolutionError as e:
            self.analytics.track(events.METADATA_FAILED, query, {"error": e.message})
            raise

        self.analytics.track(events.METADATA_REQUESTED, query, {"title": metadata.title})
        return metadata

    async def handle_stream(self, query: Any) -> StreamPlan:
        """
        Prepare a stream for ``GET /stream``.

        Metadata and locator are resolved concurrently. Metadata only decorates
        the response; the locator is required. The returned plan holds a
        transcoder that already produced its first chunk, so nothing has been
        committed to the client when this raises.

        Raises:
            ValidationError: bad query
            LocatorError: no playable source URL (no transcoder spawned)
            TranscodeError: the transcoder could not start or produced no output
        """
        query = validate_query(query)
        set_query(query)

        metadata_task = asyncio.create_task(self.resolver.resolve_metadata(query))
        locator_task = asyncio.create_task(self.resolver.resolve_stream_locator(query))

        try:
            metadata = await self._metadata_best_effort(metadata_task)

            try:
                descriptor = await locator_task
            except LocatorError as e:
                self.analytics.track(events.STREAM_FAILED, query, {"stage": "locator", "error": e.message})
                raise

            try:
                stream = await self.pipeline.open(descriptor.source_url)
            except TranscodeError as e:
                self.analytics.track(events.STREAM_FAILED, query, {"stage": "spawn", "error": e.message})
                raise

            try:
                await stream.read_first_chunk()
            except TranscodeError as e:
                self.analytics.track(events.STREAM_FAILED, query, {"stage": "start", "error": e.message})
                raise
            except asyncio.CancelledError:
                await stream.terminate()
                raise
        finally:
            for task in (metadata_task, locator_task):
                if not task.done():
                    task.cancel()

        headers = metadata_headers(metadata) if metadata is not None else {}
        self.analytics.track(
            events.STREAM_STARTED,
            query,
            {"pid": stream.pid, "has_metadata": metadata is not None},
        )
        logger.info("Stream ready", data={"pid": stream.pid, "headers": sorted(headers)})
        return StreamPlan(query=query, stream=stream, headers=headers, metadata=metadata)

    async def _metadata_best_effort(self, task: "asyncio.Task[SongMetadata]") -> Optional[SongMetadata]:
        try:
            return await task
        except ResolutionError as e:
            logger.warning("Streaming without metadata", data={"error": e.message})
            return None
        except Exception as e:
            # Metadata only decorates the response, a stream never fails on it
            logger.error(
                "Unexpected metadata failure, streaming without metadata",
                data={"error_type": type(e).__name__, "error": str(e)},
                exc_info=True,
            )
            return None

    def stream_finished(self, plan: StreamPlan, completed: bool) -> None:
        """Report the end of a stream body."""
        stream = plan.stream
        self.analytics.track(
            events.STREAM_FINISHED,
            plan.query,
            {
                "completed": completed,
                "bytes_sent": stream.bytes_sent,
                "terminated_by": stream.terminated_by,
            },
        )
