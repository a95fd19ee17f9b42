"""Centralized logging configuration."""

import logging
import sys
from pathlib import Path
from logging.handlers import RotatingFileHandler
from typing import Optional

from .formatters import JSONFormatter, StructuredLogAdapter
from .correlation import CorrelationLogFilter
from .logging_config import get_logging_config


_logging_configured = False

TEXT_FORMAT = "%(asctime)s [%(correlation_id)s] %(name)s - %(levelname)s - %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _attach(handler: logging.Handler, level: int, formatter: logging.Formatter) -> logging.Handler:
    handler.setLevel(level)
    handler.addFilter(CorrelationLogFilter())
    handler.setFormatter(formatter)
    logging.getLogger().addHandler(handler)
    return handler


def setup_logging(
    level: Optional[str] = None,
    log_file: Optional[str] = None,
    json_format: Optional[bool] = None,
    max_bytes: int = 10 * 1024 * 1024,
    backup_count: int = 3,
    component: str = "default",
    force: bool = False,
) -> None:
    """
    Configure the root logger once per process.

    Console output goes to stdout as text or JSON. An optional rotating log
    file always gets JSON. Explicit arguments win over logging-config.yaml
    and the LOG_LEVEL / LOG_JSON_FORMAT environment variables.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. None reads the config file
        log_file: Path of a rotating JSON log file
        json_format: JSON console output. None reads the config file
        max_bytes: Size at which the log file rotates
        backup_count: Rotated files to keep
        component: Section of logging-config.yaml to read
        force: Reconfigure even if logging was already set up
    """
    global _logging_configured
    if _logging_configured and not force:
        return

    log_config = get_logging_config()
    level = level or log_config.get_level(component)
    if json_format is None:
        json_format = log_config.get_json_format(component)
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)
    root_logger.handlers.clear()

    console_formatter = JSONFormatter() if json_format else logging.Formatter(TEXT_FORMAT, datefmt=DATE_FORMAT)
    _attach(logging.StreamHandler(sys.stdout), numeric_level, console_formatter)

    if log_file:
        Path(log_file).parent.mkdir(parents=True, exist_ok=True)
        _attach(
            RotatingFileHandler(log_file, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"),
            numeric_level,
            JSONFormatter(),
        )

    # Third-party loggers (uvicorn.access, httpx, redis) are quieter by default
    for module_name, module_level in log_config.get_module_levels().items():
        logging.getLogger(module_name).setLevel(module_level)

    _logging_configured = True


def get_logger(name: str) -> StructuredLogAdapter:
    """Logger for ``name`` that accepts ``data={...}``."""
    return StructuredLogAdapter(logging.getLogger(name))
