"""
Settings - Application configuration using dataclasses.

Environment variables:
- CACHE_BACKEND: redis, memory
- REDIS_URL: Redis connection URL
- CACHE_TTL / STREAM_CACHE_TTL: namespace TTLs in seconds
- CACHE_MAX_ENTRIES: soft capacity of the cache store
- YTDLP_BIN / FFMPEG_BIN: external tool executables
- RESOLVER_TIMEOUT / TRANSCODE_START_TIMEOUT / TRANSCODE_KILL_GRACE: deadlines in seconds
- RESOLVER_SINGLE_FLIGHT: coalesce concurrent identical resolutions
- PREWARM_CONCURRENCY: queries pre-warmed at the same time
- ANALYTICS_URL: HTTP endpoint for analytics events
- HOST / PORT: listen address
- LOG_LEVEL / LOG_JSON_FORMAT / LOG_FILE: logging
"""

import os
from enum import Enum
from typing import Optional
from dataclasses import dataclass, field

from ..errors import ConfigurationError


class CacheBackend(str, Enum):
    """Cache backend options."""
    REDIS = "redis"
    MEMORY = "memory"


class LogLevel(str, Enum):
    """Log level options."""
    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: str) -> int:
    raw = os.getenv(name, default)
    try:
        return int(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be an integer", data={"variable": name, "value": raw}
        )


def _env_float(name: str, default: str) -> float:
    raw = os.getenv(name, default)
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(
            f"{name} must be a number", data={"variable": name, "value": raw}
        )


def _env_enum(enum_cls, name: str, default: str):
    raw = os.getenv(name, default)
    try:
        return enum_cls(raw.strip().lower() if enum_cls is CacheBackend else raw.strip().upper())
    except ValueError:
        raise ConfigurationError(
            f"{name} has unsupported value", data={"variable": name, "value": raw}
        )


@dataclass
class Settings:
    """Application settings from environment."""

    # Cache
    cache_backend: CacheBackend = field(
        default_factory=lambda: _env_enum(CacheBackend, "CACHE_BACKEND", "redis")
    )
    redis_url: str = field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0")
    )
    cache_ttl: int = field(
        default_factory=lambda: _env_int("CACHE_TTL", "300")
    )
    stream_cache_ttl: int = field(
        default_factory=lambda: _env_int("STREAM_CACHE_TTL", "600")
    )
    cache_max_entries: int = field(
        default_factory=lambda: _env_int("CACHE_MAX_ENTRIES", "1000")
    )

    # External tools
    ytdlp_bin: str = field(
        default_factory=lambda: os.getenv("YTDLP_BIN", "yt-dlp")
    )
    ffmpeg_bin: str = field(
        default_factory=lambda: os.getenv("FFMPEG_BIN", "ffmpeg")
    )
    resolver_timeout: float = field(
        default_factory=lambda: _env_float("RESOLVER_TIMEOUT", "30")
    )
    transcode_start_timeout: float = field(
        default_factory=lambda: _env_float("TRANSCODE_START_TIMEOUT", "30")
    )
    transcode_kill_grace: float = field(
        default_factory=lambda: _env_float("TRANSCODE_KILL_GRACE", "2")
    )
    resolver_single_flight: bool = field(
        default_factory=lambda: _env_bool("RESOLVER_SINGLE_FLIGHT")
    )
    prewarm_concurrency: int = field(
        default_factory=lambda: _env_int("PREWARM_CONCURRENCY", "4")
    )

    # Analytics
    analytics_url: Optional[str] = field(
        default_factory=lambda: os.getenv("ANALYTICS_URL") or None
    )

    # Server
    host: str = field(
        default_factory=lambda: os.getenv("HOST", "0.0.0.0")
    )
    port: int = field(
        default_factory=lambda: _env_int("PORT", "3000")
    )

    # Logging
    log_level: LogLevel = field(
        default_factory=lambda: _env_enum(LogLevel, "LOG_LEVEL", "INFO")
    )
    log_json: bool = field(
        default_factory=lambda: _env_bool("LOG_JSON_FORMAT")
    )
    log_file: Optional[str] = field(
        default_factory=lambda: os.getenv("LOG_FILE") or None
    )

    def __post_init__(self):
        if self.cache_ttl <= 0 or self.stream_cache_ttl <= 0:
            raise ConfigurationError(
                "Cache TTLs must be positive",
                data={"cache_ttl": self.cache_ttl, "stream_cache_ttl": self.stream_cache_ttl},
            )
        if self.cache_max_entries < 0:
            raise ConfigurationError(
                "CACHE_MAX_ENTRIES must not be negative",
                data={"cache_max_entries": self.cache_max_entries},
            )
        if self.prewarm_concurrency < 1:
            raise ConfigurationError(
                "PREWARM_CONCURRENCY must be at least 1",
                data={"prewarm_concurrency": self.prewarm_concurrency},
            )
        if self.resolver_timeout <= 0 or self.transcode_start_timeout <= 0:
            raise ConfigurationError(
                "External process deadlines must be positive",
                data={
                    "resolver_timeout": self.resolver_timeout,
                    "transcode_start_timeout": self.transcode_start_timeout,
                },
            )


# Singleton instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get settings singleton."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """Forget the cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
