"""Correlation ID middleware for request tracing."""

import uuid
import logging
import contextvars
from typing import Any, Awaitable, Callable, MutableMapping


Scope = MutableMapping[str, Any]
Message = MutableMapping[str, Any]
Receive = Callable[[], Awaitable[Message]]
Send = Callable[[Message], Awaitable[None]]

CORRELATION_HEADER = "x-correlation-id"


# Context variable for correlation ID (thread-safe, async-safe)
correlation_id_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

# Context variable for the query being served
query_var: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "query", default=None
)


def generate_correlation_id() -> str:
    """Generate unique correlation ID."""
    return str(uuid.uuid4())[:8]


def get_correlation_id() -> str | None:
    """Get current correlation ID from context."""
    return correlation_id_var.get()


def set_correlation_id(cid: str | None):
    """Set correlation ID in context."""
    correlation_id_var.set(cid)


def get_query() -> str | None:
    """Get the query of the current request."""
    return query_var.get()


def set_query(query: str | None):
    """Set the query of the current request."""
    query_var.set(query)


class CorrelationMiddleware:
    """
    ASGI middleware that sets a correlation ID for each HTTP request.

    Reuses an incoming ``X-Correlation-ID`` header when the client sends one,
    otherwise generates a new ID. The ID is echoed back on the response so
    clients can quote it in bug reports.
    """

    def __init__(self, app: Callable[[Scope, Receive, Send], Awaitable[None]]):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        cid = None
        for name, value in scope.get("headers", []):
            if name.decode("latin-1").lower() == CORRELATION_HEADER:
                cid = value.decode("latin-1")[:64] or None
                break
        cid = cid or generate_correlation_id()

        cid_token = correlation_id_var.set(cid)
        query_token = query_var.set(None)

        async def send_with_correlation(message: Message) -> None:
            if message["type"] == "http.response.start":
                headers = list(message.get("headers", []))
                headers.append((CORRELATION_HEADER.encode("latin-1"), cid.encode("latin-1")))
                message["headers"] = headers
            await send(message)

        try:
            await self.app(scope, receive, send_with_correlation)
        finally:
            # Clear context after request
            correlation_id_var.reset(cid_token)
            query_var.reset(query_token)


class CorrelationLogFilter(logging.Filter):
    """
    Logging filter that adds correlation_id and query to log records.

    Use with standard logging to auto-inject context vars.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        record.correlation_id = get_correlation_id()
        record.query = get_query()
        return True
