"""Structured JSON logging formatter with correlation ID support."""

import json
import logging
import traceback
from datetime import datetime, timezone
from typing import Any

# Record attribute -> JSON key, copied only when set
CONTEXT_FIELDS = (
    ("correlation_id", "correlation_id"),
    ("query", "query"),
    ("structured_data", "data"),
)

# Leading logger-name segments that carry no information in a component name
_PACKAGE_PREFIXES = ("tunestream", "modules")


def component_of(logger_name: str) -> str:
    """
    Short component name for a logger.

    Examples:
        tunestream.modules.streaming.resolver -> streaming.resolver
        tunestream.api.streaming -> api.streaming
        __main__ -> main
    """
    if logger_name == "__main__":
        return "main"

    parts = logger_name.split(".")
    for prefix in _PACKAGE_PREFIXES:
        if len(parts) > 1 and parts[0] == prefix:
            parts = parts[1:]
    return ".".join(parts)


class JSONFormatter(logging.Formatter):
    """
    One JSON object per line for log aggregation.

    Every entry has timestamp, level, component, logger and message. Request
    context (correlation_id, query) and ``data={...}`` payloads are added
    when present, and exceptions are rendered with their traceback.
    """

    def __init__(self, include_path: bool = False, extra_fields: dict[str, Any] | None = None):
        super().__init__()
        self.include_path = include_path
        self.extra_fields = extra_fields or {}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
            "level": record.levelname,
            "component": component_of(record.name),
            "logger": record.name,
            "message": (record.getMessage() or "").strip(),
        }

        if self.include_path:
            entry["path"] = f"{record.pathname}:{record.lineno}"

        for attr, key in CONTEXT_FIELDS:
            value = getattr(record, attr, None)
            if value:
                entry[key] = value

        if record.exc_info:
            exc_type, exc, tb = record.exc_info
            entry["exception"] = {
                "type": exc_type.__name__ if exc_type else None,
                "message": str(exc) if exc else None,
                "traceback": traceback.format_exception(exc_type, exc, tb),
            }

        entry.update(self.extra_fields)
        return json.dumps(entry, ensure_ascii=False, default=str)


class StructuredLogAdapter(logging.LoggerAdapter):
    """
    Logger adapter accepting a ``data`` keyword on every log call.

    Usage:
        logger = StructuredLogAdapter(logging.getLogger(__name__))
        logger.info("Cache miss", data={"key": "song:shape of you"})
    """

    def __init__(self, logger: logging.Logger, extra: dict | None = None):
        super().__init__(logger, extra or {})

    def process(self, msg: str, kwargs: dict) -> tuple[str, dict]:
        """Move ``data`` into the record's extra fields."""
        extra = dict(self.extra)
        extra.update(kwargs.get("extra") or {})

        data = kwargs.pop("data", None)
        if data:
            extra["structured_data"] = data

        kwargs["extra"] = extra
        return ("" if msg is None else str(msg)), kwargs
