"""
symdedup - Configuration structlog.

Centralised structlog setup for structured logging. Logs are written to
stderr: stdout is reserved for the duplicate report.

Usage:
    from symdedup.config.logging import configure_logging

    # At application start
    configure_logging()

    # In modules
    import structlog
    logger = structlog.get_logger(__name__)
    logger.info("message", key=value)
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, TextIO

import structlog
from structlog.types import EventDict, WrappedLogger

LOG_FORMATS = ("console", "json")


def add_app_context(logger: WrappedLogger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the application name to every log event."""
    event_dict["app"] = "symdedup"
    return event_dict


def configure_logging(
    level: Optional[str] = None,
    json_format: Optional[bool] = None,
    enable_colors: bool = False,
    stream: Optional[TextIO] = None,
) -> None:
    """
    Configure structlog for symdedup.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
            Defaults to the LOG_LEVEL environment variable, then INFO.
        json_format: True for JSON lines, False for human readable output.
            Defaults to LOG_FORMAT == "json".
        enable_colors: Colorize console output (interactive use only)
        stream: Destination stream (stderr by default)

    Example:
        >>> configure_logging(level="DEBUG", json_format=False, enable_colors=True)
    """
    if level is None:
        level = os.getenv("LOG_LEVEL", "INFO")
    if json_format is None:
        json_format = os.getenv("LOG_FORMAT", "console") == "json"

    numeric_level = getattr(logging, level.upper(), None)
    if not isinstance(numeric_level, int):
        raise ValueError(f"Unknown log level: {level}")

    logging.basicConfig(
        format="%(message)s",
        stream=stream or sys.stderr,
        level=numeric_level,
        force=True,
    )

    processors = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        add_app_context,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_format:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer(colors=enable_colors))

    structlog.configure(
        processors=processors,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )
