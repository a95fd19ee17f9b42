"""HTTP API layer."""

from .app import create_app
from .dependencies import ServiceContainer, build_container, get_container

__all__ = [
    'create_app',
    'ServiceContainer',
    'build_container',
    'get_container',
]
