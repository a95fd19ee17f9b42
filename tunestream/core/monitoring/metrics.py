"""
Service metrics collection using Prometheus.

Tracks key performance indicators:
- Cache hit/miss rate per namespace
- External resolver invocations and latency
- Transcoder spawns and forced terminations
- HTTP requests per endpoint and status
"""

from prometheus_client import Counter, Histogram, Gauge, Info
import time
from functools import wraps
from typing import Callable, Any, Optional

# =============================================================================
# Request Metrics
# =============================================================================

http_requests_total = Counter(
    'tunestream_http_requests_total',
    'Total HTTP requests handled',
    ['endpoint', 'status']
)

active_streams = Gauge(
    'tunestream_active_streams',
    'Audio streams currently being written to clients'
)

# =============================================================================
# Cache Metrics
# =============================================================================

cache_operations_total = Counter(
    'tunestream_cache_operations_total',
    'Total cache operations',
    ['namespace', 'operation', 'result']  # result: hit, miss, ok, unavailable
)

cache_entries = Gauge(
    'tunestream_cache_entries',
    'Cache entries at last status check',
    ['namespace']
)

# =============================================================================
# External Process Metrics
# =============================================================================

resolver_invocations_total = Counter(
    'tunestream_resolver_invocations_total',
    'External search/extraction invocations',
    ['operation', 'status']  # operation: metadata, locator; status: success, failure, timeout
)

resolver_duration_seconds = Histogram(
    'tunestream_resolver_duration_seconds',
    'External search/extraction duration in seconds',
    ['operation'],
    buckets=[0.5, 1, 2, 5, 10, 20, 30, 60]
)

transcoder_spawns_total = Counter(
    'tunestream_transcoder_spawns_total',
    'Transcoder processes spawned'
)

transcoder_terminations_total = Counter(
    'tunestream_transcoder_terminations_total',
    'Transcoder processes ended by the service',
    ['signal']  # term, kill
)

prewarm_duration_seconds = Histogram(
    'tunestream_prewarm_duration_seconds',
    'Cache pre-warm batch duration in seconds',
    buckets=[1, 5, 10, 30, 60, 120, 300]
)

# =============================================================================
# Info Metrics
# =============================================================================

app_info = Info(
    'tunestream_app',
    'Application version and environment info'
)

# =============================================================================
# Decorators for Automatic Metrics
# =============================================================================

def track_duration(metric: Histogram, labels: Optional[dict] = None):
    """
    Decorator to track coroutine execution duration.

    Usage:
        @track_duration(prewarm_duration_seconds)
        async def prewarm(self, queries):
            ...
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        async def wrapper(*args, **kwargs) -> Any:
            start_time = time.perf_counter()
            try:
                return await func(*args, **kwargs)
            finally:
                duration = time.perf_counter() - start_time
                if labels:
                    metric.labels(**labels).observe(duration)
                else:
                    metric.observe(duration)
        return wrapper
    return decorator


# =============================================================================
# Helper Functions
# =============================================================================

def record_cache_hit(namespace: str):
    """Record a cache hit."""
    cache_operations_total.labels(namespace=namespace, operation='get', result='hit').inc()


def record_cache_miss(namespace: str):
    """Record a cache miss."""
    cache_operations_total.labels(namespace=namespace, operation='get', result='miss').inc()


def record_cache_unavailable(namespace: str, operation: str):
    """Record a cache operation that degraded because the store was down."""
    cache_operations_total.labels(namespace=namespace, operation=operation, result='unavailable').inc()


def record_resolution(operation: str, status: str, duration: float):
    """Record one external resolver invocation."""
    resolver_invocations_total.labels(operation=operation, status=status).inc()
    resolver_duration_seconds.labels(operation=operation).observe(duration)


def record_request(endpoint: str, status: int):
    """Record an HTTP request outcome."""
    http_requests_total.labels(endpoint=endpoint, status=str(status)).inc()


def set_app_info(version: str, environment: str, python_version: str):
    """Set application info metric."""
    app_info.info({
        'version': version,
        'environment': environment,
        'python_version': python_version
    })
