"""
Pytest configuration for tunestream tests.

Automatically adds project root to sys.path so that 'from tunestream...'
imports work without installing the package. Defines markers and shared
fixtures.
"""
import os
import sys
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from tunestream.common.logging import LoggingConfig
from tunestream.core.config import CacheBackend, Settings, reset_settings
from tunestream.core.connectors import InMemoryCache
from tunestream.modules.streaming import RecordingAnalytics

from tests.fakes import FakeRunner


# =============================================================================
# Pytest Markers
# =============================================================================

def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "asyncio: Async tests")
    config.addinivalue_line("markers", "integration: Integration tests (real subprocesses or services)")
    config.addinivalue_line("markers", "requires_redis: Requires Redis service")


# =============================================================================
# Shared Fixtures
# =============================================================================

@pytest.fixture
def project_root() -> Path:
    """Return project root path."""
    return PROJECT_ROOT


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    """Keep settings and logging config from leaking between tests."""
    for name in list(os.environ):
        if name.startswith(("CACHE_", "STREAM_CACHE_", "RESOLVER_", "TRANSCODE_", "PREWARM_", "LOG_")):
            monkeypatch.delenv(name, raising=False)
    for name in ("REDIS_URL", "ANALYTICS_URL", "YTDLP_BIN", "FFMPEG_BIN", "HOST", "PORT", "LOGGING_CONFIG"):
        monkeypatch.delenv(name, raising=False)
    reset_settings()
    LoggingConfig.reset_instance()
    yield
    reset_settings()
    LoggingConfig.reset_instance()


@pytest.fixture
def settings() -> Settings:
    """Settings for an in-memory deployment with short deadlines."""
    return Settings(
        cache_backend=CacheBackend.MEMORY,
        redis_url="redis://localhost:6379/15",
        resolver_timeout=5.0,
        transcode_start_timeout=5.0,
        transcode_kill_grace=1.0,
        analytics_url=None,
    )


@pytest.fixture
def memory_store() -> InMemoryCache:
    return InMemoryCache(max_entries=1000)


@pytest.fixture
def fake_runner() -> FakeRunner:
    return FakeRunner()


@pytest.fixture
def analytics() -> RecordingAnalytics:
    return RecordingAnalytics()


# =============================================================================
# Redis Fixture
# =============================================================================

@pytest.fixture(scope="session")
def redis_url():
    """
    URL of a reachable Redis server.

    Uses REDIS_TEST_URL (default: localhost, database 15). Tests are skipped
    when no server answers.
    """
    url = os.getenv("REDIS_TEST_URL", "redis://localhost:6379/15")
    try:
        import redis
        client = redis.Redis.from_url(url, socket_connect_timeout=1)
        client.ping()
        client.close()
    except Exception:
        pytest.skip(f"Redis not reachable at {url}")
    return url
