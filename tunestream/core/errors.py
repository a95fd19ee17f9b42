"""
Custom error classes with structured logging and error propagation.

All errors include correlation context and structured data for observability.
"""

import logging
from typing import Optional, Dict, Any

from tunestream.common.logging import get_logger
from tunestream.common.logging.correlation import get_correlation_id, get_query

logger = get_logger(__name__)


class TuneStreamError(Exception):
    """
    Base error class for all application errors.

    Automatically logs errors with correlation context when raised.
    """

    log_level = logging.ERROR

    def __init__(
        self,
        message: str,
        data: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        """
        Initialize error with structured context.

        Args:
            message: Human-readable error message
            data: Structured data for observability
            cause: Original exception that caused this error
        """
        super().__init__(message)
        self.message = message
        self.data = data or {}
        self.cause = cause

        self.correlation_id = get_correlation_id()
        self.query = get_query()

        self._log_error()

    def _log_error(self):
        """Log error with structured data."""
        log_data = {
            "error_type": self.__class__.__name__,
            "correlation_id": self.correlation_id,
            "query": self.query,
            **self.data,
        }

        if self.cause:
            log_data["cause"] = str(self.cause)

        logger.log(self.log_level, self.message, extra={"structured_data": log_data})

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for serialization."""
        return {
            "error": self.__class__.__name__,
            "message": self.message,
            "data": self.data,
            "correlation_id": self.correlation_id,
            "cause": str(self.cause) if self.cause else None,
        }


# Input errors
class ValidationError(TuneStreamError):
    """Missing or empty query. Maps to HTTP 400, never retried."""
    log_level = logging.INFO


# Resolution errors
class ResolutionError(TuneStreamError):
    """External search/extraction tool failed or returned unparsable output."""
    pass


class LocatorError(ResolutionError):
    """External tool failed to produce a playable source URL."""
    pass


# Cache errors
class StoreUnavailable(TuneStreamError):
    """Cache store could not be reached. Callers degrade to a miss."""
    log_level = logging.WARNING


# Transcoding errors
class TranscodeError(TuneStreamError):
    """Decode/encode process exited abnormally or never produced output."""
    pass


# Command construction errors
class CommandError(TuneStreamError):
    """External command arguments failed validation."""
    pass


# Configuration errors
class ConfigurationError(TuneStreamError):
    """Error in configuration."""
    pass
