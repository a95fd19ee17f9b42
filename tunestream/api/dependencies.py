"""
Service container - wires the cache store, process runner, pipeline and
analytics sink into the services the routes use.
"""

from dataclasses import dataclass
from typing import Optional

from fastapi import Request

from tunestream.common.logging import get_logger
from tunestream.core.config import Settings, create_cache_store, get_settings
from tunestream.core.interfaces import AnalyticsProtocol, CacheStoreProtocol, ProcessRunnerProtocol
from tunestream.modules.streaming import (
    CacheAdmin,
    CommandBuilder,
    ProcessRunner,
    Resolver,
    StreamingService,
    TranscodePipeline,
    create_analytics,
)

logger = get_logger(__name__)


@dataclass
class ServiceContainer:
    """Everything a request handler needs, built once per application."""
    settings: Settings
    store: CacheStoreProtocol
    runner: ProcessRunnerProtocol
    resolver: Resolver
    pipeline: TranscodePipeline
    analytics: AnalyticsProtocol
    streaming: StreamingService
    admin: CacheAdmin

    async def close(self) -> None:
        """Stop transcoders and release the store and analytics clients."""
        await self.pipeline.terminate_all()
        await self.analytics.close()
        await self.store.close()


def build_container(
    settings: Optional[Settings] = None,
    store: Optional[CacheStoreProtocol] = None,
    runner: Optional[ProcessRunnerProtocol] = None,
    analytics: Optional[AnalyticsProtocol] = None,
) -> ServiceContainer:
    """
    Build the service graph.

    Any collaborator can be passed in to replace the one derived from
    settings (tests use fake runners and in-memory stores).
    """
    settings = settings or get_settings()
    store = store or create_cache_store(settings=settings)
    runner = runner or ProcessRunner()
    analytics = analytics or create_analytics(settings.analytics_url)
    commands = CommandBuilder(ytdlp_bin=settings.ytdlp_bin, ffmpeg_bin=settings.ffmpeg_bin)

    resolver = Resolver(
        store,
        runner,
        commands=commands,
        metadata_ttl=settings.cache_ttl,
        stream_ttl=settings.stream_cache_ttl,
        timeout=settings.resolver_timeout,
        single_flight=settings.resolver_single_flight,
    )
    pipeline = TranscodePipeline(
        runner,
        commands=commands,
        start_timeout=settings.transcode_start_timeout,
        kill_grace=settings.transcode_kill_grace,
    )

    logger.info(
        "Service container built",
        data={
            "store": type(store).__name__,
            "single_flight": resolver.single_flight,
            "analytics": type(analytics).__name__,
        },
    )

    return ServiceContainer(
        settings=settings,
        store=store,
        runner=runner,
        resolver=resolver,
        pipeline=pipeline,
        analytics=analytics,
        streaming=StreamingService(resolver, pipeline, analytics),
        admin=CacheAdmin(
            store,
            resolver,
            ttl=settings.cache_ttl,
            stream_ttl=settings.stream_cache_ttl,
            analytics=analytics,
            concurrency=settings.prewarm_concurrency,
        ),
    )


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container
