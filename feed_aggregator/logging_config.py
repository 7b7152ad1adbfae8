"""Structured logging setup."""

import logging
import sys

import structlog

from feed_aggregator.errors import ConfigurationError


def configure_logging(level: str = "INFO", json_output: bool = False) -> None:
    """Configure structlog for command line use.

    Logs go to stderr so the rendered feed can be piped from stdout.

    Args:
        level: Minimum log level name
        json_output: Render JSON lines instead of human readable output
    """
    level_value = logging.getLevelName(level.upper())
    if not isinstance(level_value, int):
        raise ConfigurationError(f"Unknown log level: {level}")

    renderer = (
        structlog.processors.JSONRenderer() if json_output else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_value),
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )
