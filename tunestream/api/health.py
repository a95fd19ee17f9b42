"""
Health check and metrics endpoints for observability.

- /health - Basic liveness check
- /health/ready - Readiness check (cache store and external tools)
- /metrics - Prometheus-compatible metrics
"""

import os
import shutil
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import psutil
from fastapi import APIRouter, Depends, Response, status
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from pydantic import BaseModel

from tunestream import __version__
from tunestream.common.logging import get_logger
from tunestream.core.errors import StoreUnavailable

from .dependencies import ServiceContainer, get_container

logger = get_logger(__name__)
router = APIRouter(tags=["health"])

# Track startup time for uptime calculation
_start_time = time.time()

REQUIRED_CHECKS = ("cache", "yt-dlp", "ffmpeg")


class HealthStatus(BaseModel):
    """Health check response model."""
    status: str
    timestamp: str
    uptime_seconds: float
    version: str = __version__
    details: Optional[Dict[str, Any]] = None


class ReadinessStatus(BaseModel):
    """Readiness check response model."""
    ready: bool
    timestamp: str
    checks: Dict[str, Dict[str, Any]]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


async def get_store_health(container: ServiceContainer) -> Dict[str, Any]:
    """Check cache store connectivity."""
    try:
        reachable = await container.store.ping()
    except StoreUnavailable as e:
        return {"status": "unhealthy", "error": e.message}

    if not reachable:
        return {"status": "unhealthy", "backend": type(container.store).__name__}
    return {"status": "healthy", "backend": type(container.store).__name__}


def get_tool_health(program: str) -> Dict[str, Any]:
    """Check an external executable is on PATH."""
    path = shutil.which(program)
    if path is None:
        logger.warning("External tool not found", data={"program": program})
        return {"status": "unhealthy", "program": program}
    return {"status": "healthy", "path": path}


def get_memory_health() -> Dict[str, Any]:
    """Check memory usage."""
    mem = psutil.virtual_memory()
    state = "healthy" if mem.percent < 85 else "degraded" if mem.percent < 95 else "critical"
    return {
        "status": state,
        "total_mb": round(mem.total / (1024**2), 2),
        "available_mb": round(mem.available / (1024**2), 2),
        "used_percent": round(mem.percent, 1),
    }


@router.get("/health", response_model=HealthStatus)
async def health_check(container: ServiceContainer = Depends(get_container)):
    """
    Basic health check endpoint (liveness probe).

    Returns 200 if service is running.
    """
    return HealthStatus(
        status="healthy",
        timestamp=_now(),
        uptime_seconds=round(time.time() - _start_time, 2),
        details={
            "service": "tunestream",
            "environment": os.getenv("ENVIRONMENT", "production"),
            "active_streams": container.pipeline.active_count,
        },
    )


@router.get("/health/ready", response_model=ReadinessStatus)
async def readiness_check(response: Response, container: ServiceContainer = Depends(get_container)):
    """
    Readiness check endpoint (readiness probe).

    Returns 200 if ready, 503 if the cache store or an external tool is
    missing. Memory pressure is reported but never blocks readiness.
    """
    settings = container.settings
    checks = {
        "cache": await get_store_health(container),
        "yt-dlp": get_tool_health(settings.ytdlp_bin),
        "ffmpeg": get_tool_health(settings.ffmpeg_bin),
        "memory": get_memory_health(),
    }

    ready = all(checks[name]["status"] == "healthy" for name in REQUIRED_CHECKS)

    if not ready:
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE

    return ReadinessStatus(ready=ready, timestamp=_now(), checks=checks)


@router.get("/metrics", response_class=Response)
async def metrics():
    """Prometheus exposition of the service metrics."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
