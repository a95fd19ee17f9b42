"""Logging and small shared utilities."""

from .logger import setup_logging, get_logger
from .logging_config import LoggingConfig, get_logging_config
from .formatters import JSONFormatter, StructuredLogAdapter
from .correlation import (
    CorrelationMiddleware,
    CorrelationLogFilter,
    generate_correlation_id,
    get_correlation_id,
    set_correlation_id,
    get_query,
    set_query,
)
from .format import parse_duration

__all__ = [
    # Logger
    'setup_logging',
    'get_logger',
    # Logging config
    'LoggingConfig',
    'get_logging_config',
    # Structured logging
    'JSONFormatter',
    'StructuredLogAdapter',
    # Correlation
    'CorrelationMiddleware',
    'CorrelationLogFilter',
    'generate_correlation_id',
    'get_correlation_id',
    'set_correlation_id',
    'get_query',
    'set_query',
    # Format
    'parse_duration',
]
