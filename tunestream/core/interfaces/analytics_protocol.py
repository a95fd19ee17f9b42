"""
Analytics Protocol - Side-effect port for per-request analytics events.

Implementations must never raise and never block the request.
"""

from typing import Any, Dict, Optional, Protocol, runtime_checkable


@runtime_checkable
class AnalyticsProtocol(Protocol):
    """Protocol for analytics sinks (DI interface)."""

    def track(self, event: str, query: Optional[str], properties: Optional[Dict[str, Any]] = None) -> None:
        """Record an event, fire-and-forget."""
        ...

    async def close(self) -> None:
        """Flush pending events and release resources."""
        ...
