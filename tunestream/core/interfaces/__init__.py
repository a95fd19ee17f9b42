"""
Interfaces - Protocols for Dependency Injection.

These protocols define contracts that implementations must follow.
Use Protocol for type hints to enable loose coupling.

Example:
    def build_resolver(store: CacheStoreProtocol, runner: ProcessRunnerProtocol):
        # Works with Redis or in-memory stores, real or fake runners
        ...
"""

from .cache_protocol import CacheStoreProtocol
from .process_protocol import (
    CommandSpec,
    ProcessResult,
    ProcessRunnerProtocol,
)
from .analytics_protocol import AnalyticsProtocol

__all__ = [
    # Cache
    'CacheStoreProtocol',
    # Process
    'CommandSpec',
    'ProcessResult',
    'ProcessRunnerProtocol',
    # Analytics
    'AnalyticsProtocol',
]
