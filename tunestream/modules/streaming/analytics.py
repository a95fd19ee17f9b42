"""
Analytics sinks.

The endpoint reports one event per routing decision. Sinks never raise into
the request and never make it wait.
"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Set

import httpx

from tunestream.common.logging import get_logger
from tunestream.common.logging.correlation import get_correlation_id

logger = get_logger(__name__)

# Event names
METADATA_REQUESTED = "metadata_requested"
METADATA_FAILED = "metadata_failed"
STREAM_STARTED = "stream_started"
STREAM_FAILED = "stream_failed"
STREAM_FINISHED = "stream_finished"
PREWARM_REQUESTED = "prewarm_requested"
CACHE_CLEARED = "cache_cleared"


def build_event(event: str, query: Optional[str], properties: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {
        "event": event,
        "query": query,
        "correlation_id": get_correlation_id(),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "properties": properties or {},
    }


class LoggingAnalytics:
    """Writes events to the application log (default when no sink is configured)."""

    def track(self, event: str, query: Optional[str], properties: Optional[Dict[str, Any]] = None) -> None:
        logger.info(f"analytics: {event}", data=build_event(event, query, properties))

    async def close(self) -> None:
        return None


class RecordingAnalytics:
    """Keeps events in memory."""

    def __init__(self):
        self.events: List[Dict[str, Any]] = []

    def track(self, event: str, query: Optional[str], properties: Optional[Dict[str, Any]] = None) -> None:
        self.events.append(build_event(event, query, properties))

    def names(self) -> List[str]:
        return [e["event"] for e in self.events]

    async def close(self) -> None:
        return None


class HttpAnalytics:
    """
    POSTs each event as JSON to an HTTP capture endpoint.

    Each event is sent from its own background task; failures are logged at
    debug level and otherwise ignored.
    """

    def __init__(self, url: str, timeout: float = 2.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._pending: Set[asyncio.Task] = set()

    def track(self, event: str, query: Optional[str], properties: Optional[Dict[str, Any]] = None) -> None:
        payload = build_event(event, query, properties)
        try:
            task = asyncio.get_running_loop().create_task(self._send(payload))
        except RuntimeError:
            logger.debug("No running loop, analytics event dropped", data={"event": event})
            return
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _send(self, payload: Dict[str, Any]) -> None:
        try:
            response = await self._client.post(self.url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.debug(f"Analytics delivery failed: {e}", data={"event": payload["event"]})

    async def close(self) -> None:
        if self._pending:
            await asyncio.wait(list(self._pending), timeout=2.0)
        await self._client.aclose()


def create_analytics(url: Optional[str]):
    """Pick the HTTP sink when a URL is configured, else log events."""
    if url:
        return HttpAnalytics(url)
    return LoggingAnalytics()
