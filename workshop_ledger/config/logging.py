"""Structured logging configuration for the workshop ledger."""

import logging
import sys
from typing import List, Optional, TextIO

import structlog

from workshop_ledger.config.loader import load_ledger_config


def configure_logging(
    level: Optional[str] = None,
    format: Optional[str] = None,
    stream: Optional[TextIO] = None,
) -> None:
    """Configure structured logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to the ledger config.
        format: Output format (json or console). Defaults to the ledger config.
        stream: Output stream. Defaults to stdout.
    """
    if level is None or format is None:
        config = load_ledger_config()
        level = level or config.log_level
        format = format or config.log_format
    log_level = level
    log_format = format
    log_stream = stream or sys.stdout

    logging.basicConfig(
        format="%(message)s",
        stream=log_stream,
        level=getattr(logging, log_level),
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(
            colors=log_stream.isatty(),
            exception_formatter=structlog.dev.plain_traceback,
        )

    shared_processors: List[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
    ]

    structlog.configure(
        processors=shared_processors + [renderer],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger instance bound to the given name.

    Args:
        name: Logger name (typically __name__).

    Returns:
        Bound logger instance.
    """
    return structlog.get_logger(name)
