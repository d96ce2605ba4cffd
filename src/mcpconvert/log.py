"""Logging setup for mcpconvert."""

import logging
import sys
from typing import Optional

import structlog

from .config import LoggingSettings


def configure_logging(settings: Optional[LoggingSettings] = None) -> None:
    """Route structlog through the standard library logger on stderr.

    Args:
        settings: Level and renderer to use. Defaults to INFO with console output.
    """
    settings = settings or LoggingSettings()

    logging.basicConfig(
        level=getattr(logging, settings.level.upper(), logging.INFO),
        format="%(message)s",
        stream=sys.stderr,
        force=True,
    )

    structlog.configure(
        processors=[
            structlog.stdlib.add_log_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.format_exc_info,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.dev.ConsoleRenderer(colors=False)
            if settings.format == "console"
            else structlog.processors.JSONRenderer(sort_keys=True),
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
