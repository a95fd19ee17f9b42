"""Monitoring and metrics collection."""

from .metrics import (
    # Decorators
    track_duration,

    # Helper functions
    record_cache_hit,
    record_cache_miss,
    record_cache_unavailable,
    record_resolution,
    record_request,
    set_app_info,

    # Metrics
    http_requests_total,
    active_streams,
    cache_operations_total,
    cache_entries,
    resolver_invocations_total,
    resolver_duration_seconds,
    transcoder_spawns_total,
    transcoder_terminations_total,
    prewarm_duration_seconds,
)

__all__ = [
    'track_duration',
    'record_cache_hit',
    'record_cache_miss',
    'record_cache_unavailable',
    'record_resolution',
    'record_request',
    'set_app_info',
    'http_requests_total',
    'active_streams',
    'cache_operations_total',
    'cache_entries',
    'resolver_invocations_total',
    'resolver_duration_seconds',
    'transcoder_spawns_total',
    'transcoder_terminations_total',
    'prewarm_duration_seconds',
]
