"""Structured logging configuration for dbtask.

Uses structlog on top of stdlib logging, with console or JSON output.
Library modules only call :func:`get_logger`; applications call
:func:`configure_logging` (or :func:`configure_from_settings`) once.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, TextIO

import structlog

if TYPE_CHECKING:
    from dbtask.config import Settings

LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def configure_logging(
    level: str = "INFO",
    json_output: bool = False,
    log_file: Path | None = None,
    colors: bool = True,
) -> None:
    """Configure structured logging.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: Emit one JSON object per event
        log_file: Append to this file instead of stderr
        colors: Colorize console output

    Raises:
        ValueError: If ``level`` is not a known level name
    """
    level = level.upper()
    if level not in LEVELS:
        raise ValueError(f"Unknown log level: {level}")

    stream: TextIO = sys.stderr
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        stream = open(log_file, "a")  # noqa: SIM115

    logging.basicConfig(
        format="%(message)s",
        stream=stream,
        level=getattr(logging, level),
        force=True,
    )

    renderer: structlog.types.Processor
    if json_output:
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=colors)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def configure_from_settings(settings: Settings) -> None:
    """Configure logging from a :class:`dbtask.config.Settings` instance."""
    configure_logging(
        level=settings.log_level,
        json_output=settings.json_logs,
        log_file=settings.log_file,
        colors=not settings.json_logs,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Structured logger instance
    """
    return structlog.get_logger(name)
