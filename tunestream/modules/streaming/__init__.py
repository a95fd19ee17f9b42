"""
Streaming module - query resolution, caching and audio transcoding.

Usage:
    from tunestream.modules.streaming import Resolver, TranscodePipeline, StreamingService

    resolver = Resolver(store, ProcessRunner())
    service = StreamingService(resolver, TranscodePipeline(ProcessRunner()))
    plan = await service.handle_stream("shape of you")
"""

from .normalizer import (
    normalize,
    song_key,
    stream_key,
    SONG_NAMESPACE,
    STREAM_NAMESPACE,
)
from .models import (
    SongMetadata,
    StreamDescriptor,
    PrewarmResult,
    CacheStatus,
    StreamPlan,
)
from .commands import CommandBuilder, validate_source_url
from .process import ProcessRunner, kill_process
from .singleflight import SingleFlight
from .resolver import Resolver
from .transcoder import TranscodePipeline, TranscodeStream
from .analytics import (
    LoggingAnalytics,
    RecordingAnalytics,
    HttpAnalytics,
    create_analytics,
)
from .service import StreamingService, validate_query
from .admin import CacheAdmin

__all__ = [
    # Keys
    'normalize',
    'song_key',
    'stream_key',
    'SONG_NAMESPACE',
    'STREAM_NAMESPACE',
    # Models
    'SongMetadata',
    'StreamDescriptor',
    'PrewarmResult',
    'CacheStatus',
    'StreamPlan',
    # External processes
    'CommandBuilder',
    'validate_source_url',
    'ProcessRunner',
    'kill_process',
    # Resolution
    'SingleFlight',
    'Resolver',
    # Transcoding
    'TranscodePipeline',
    'TranscodeStream',
    # Analytics
    'LoggingAnalytics',
    'RecordingAnalytics',
    'HttpAnalytics',
    'create_analytics',
    # Services
    'StreamingService',
    'validate_query',
    'CacheAdmin',
]
