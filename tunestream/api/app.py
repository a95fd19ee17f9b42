"""
FastAPI application for tunestream.

Endpoints:
- GET /metadata - Song metadata
- GET /stream - Song audio as WAV
- GET /cache/status, POST /cache/prewarm, DELETE /cache/clear - Cache admin
- GET /health, GET /health/ready, GET /metrics - Observability
"""

import platform
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from tunestream import __version__
from tunestream.common.logging import CorrelationMiddleware, get_logger
from tunestream.core.errors import TuneStreamError, ValidationError
from tunestream.core.monitoring import record_request, set_app_info

from . import cache, health, streaming
from .dependencies import ServiceContainer, build_container

logger = get_logger(__name__)

KNOWN_ENDPOINTS = frozenset({
    "/metadata",
    "/stream",
    "/cache/status",
    "/cache/prewarm",
    "/cache/clear",
    "/health",
    "/health/ready",
    "/metrics",
})


class RequestMetricsMiddleware:
    """Counts responses per endpoint and status code."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        path = scope.get("path", "")
        endpoint = path if path in KNOWN_ENDPOINTS else "other"

        async def send_with_metrics(message: Message) -> None:
            if message["type"] == "http.response.start":
                record_request(endpoint, message["status"])
            await send(message)

        await self.app(scope, receive, send_with_metrics)


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message})


async def service_error_handler(request: Request, exc: TuneStreamError) -> JSONResponse:
    return JSONResponse(status_code=500, content={"error": exc.message})


def create_app(container: Optional[ServiceContainer] = None) -> FastAPI:
    """
    Build the application.

    Args:
        container: Prebuilt services (tests). Built from settings at startup
            when omitted.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "container", None) is None:
            app.state.container = build_container()
        set_app_info(__version__, "production", platform.python_version())
        logger.info("tunestream started", data={"version": __version__})
        try:
            yield
        finally:
            logger.info("tunestream shutting down")
            await app.state.container.close()

    app = FastAPI(
        title="tunestream",
        description="Song search, metadata and audio streaming service",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.container = container

    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(TuneStreamError, service_error_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Song-Title", "X-Song-Duration", "X-Song-Artist", "X-Correlation-ID"],
    )
    app.add_middleware(RequestMetricsMiddleware)
    app.add_middleware(CorrelationMiddleware)

    app.include_router(streaming.router)
    app.include_router(cache.router)
    app.include_router(health.router)

    return app
