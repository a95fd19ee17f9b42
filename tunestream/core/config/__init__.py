"""
Config - Application configuration.

- settings.py: Settings from environment
- cache.py: Cache store factory
"""

from .settings import Settings, CacheBackend, LogLevel, get_settings, reset_settings
from .cache import create_cache_store

__all__ = [
    # Settings
    "Settings",
    "CacheBackend",
    "LogLevel",
    "get_settings",
    "reset_settings",
    # Cache
    "create_cache_store",
]
