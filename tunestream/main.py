#!/usr/bin/env python3
"""
tunestream - Main Entry Point

Serves the song metadata, streaming and cache admin API with uvicorn.
"""

import argparse
import sys
from typing import List, Optional

# Load .env file (for local development)
from dotenv import load_dotenv
load_dotenv()

import uvicorn

from tunestream.common.logging import get_logger, setup_logging
from tunestream.core.config import get_settings
from tunestream.core.errors import ConfigurationError

logger = get_logger(__name__)


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tunestream",
        description="Song search, metadata and audio streaming server",
    )
    parser.add_argument("--host", help="Listen address (default: HOST or 0.0.0.0)")
    parser.add_argument("--port", type=int, help="Listen port (default: PORT or 3000)")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    return parser.parse_args(argv)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    args = parse_args(argv)

    try:
        settings = get_settings()
    except ConfigurationError as e:
        print(f"Invalid configuration: {e.message} {e.data}", file=sys.stderr)
        return 2

    # Level and format come from LOG_LEVEL, LOG_JSON_FORMAT or logging-config.yaml
    setup_logging(level=args.log_level, log_file=settings.log_file)

    host = args.host or settings.host
    port = args.port or settings.port

    from tunestream.api import create_app

    logger.info(
        "Starting tunestream",
        data={"host": host, "port": port, "cache_backend": settings.cache_backend.value},
    )
    uvicorn.run(create_app(), host=host, port=port, log_config=None)
    return 0


if __name__ == "__main__":
    sys.exit(main())
