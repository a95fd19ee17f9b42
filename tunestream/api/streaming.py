"""
Song endpoints.

- GET /metadata?q= - best-match song metadata as JSON
- GET /stream?q=   - best-match audio as chunked PCM WAV
"""

from typing import Callable, Optional

from fastapi import APIRouter, Depends, Query, Response
from starlette.responses import StreamingResponse
from starlette.types import Receive, Scope, Send

from tunestream.common.logging import get_logger
from tunestream.core.errors import LocatorError, TranscodeError
from tunestream.core.monitoring import active_streams
from tunestream.modules.streaming import StreamPlan

from .dependencies import ServiceContainer, get_container

logger = get_logger(__name__)
router = APIRouter(tags=["songs"])

AUDIO_MEDIA_TYPE = "audio/wav"


class TranscodeStreamingResponse(StreamingResponse):
    """
    Streams a running transcoder to the client.

    The transcoder process is terminated when the response ends for any
    reason: EOF, client disconnect, server shutdown or a write error.
    """

    def __init__(
        self,
        plan: StreamPlan,
        on_finish: Optional[Callable[[StreamPlan, bool], None]] = None,
    ):
        self.plan = plan
        self._on_finish = on_finish
        self._failed = False
        super().__init__(self._body(), media_type=AUDIO_MEDIA_TYPE, headers=plan.headers)

    async def _body(self):
        try:
            async for chunk in self.plan.stream:
                yield chunk
        except TranscodeError:
            # Headers are already committed, the body just ends
            self._failed = True

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        stream = self.plan.stream
        active_streams.inc()
        try:
            await super().__call__(scope, receive, send)
        finally:
            await stream.terminate()
            active_streams.dec()
            completed = not self._failed and stream.terminated_by is None
            logger.info(
                "Stream finished",
                data={
                    "pid": stream.pid,
                    "completed": completed,
                    "bytes_sent": stream.bytes_sent,
                    "terminated_by": stream.terminated_by,
                },
            )
            if self._on_finish is not None:
                self._on_finish(self.plan, completed)


@router.get("/metadata")
async def get_metadata(
    q: Optional[str] = Query(None, description="Free-text song query"),
    container: ServiceContainer = Depends(get_container),
):
    """Resolve metadata for the best match of ``q``."""
    metadata = await container.streaming.handle_metadata(q)
    return metadata.to_dict()


@router.get("/stream")
async def stream_song(
    q: Optional[str] = Query(None, description="Free-text song query"),
    container: ServiceContainer = Depends(get_container),
):
    """
    Stream the best match of ``q`` as 16-bit 44.1 kHz stereo WAV.

    Song metadata, when it resolves, is sent as X-Song-* headers. Locator or
    transcoder start failures answer 500 without an audio body.
    """
    try:
        plan = await container.streaming.handle_stream(q)
    except (LocatorError, TranscodeError):
        return Response(status_code=500)

    return TranscodeStreamingResponse(plan, on_finish=container.streaming.stream_finished)
