"""Logging configuration using structlog.

Engine events go to stderr so they never mix with what a test runner or the
CLI prints on stdout. Debug mode renders them for humans, otherwise each event
is one JSON line.
"""

import logging
import sys

import structlog

from rigging.config import RiggingSettings, get_settings


def configure_logging(settings: RiggingSettings | None = None) -> None:
    """Configure structlog for the engine and the tools built on it."""
    settings = settings or get_settings()
    log_level = getattr(logging, settings.log_level)

    renderer: structlog.types.Processor
    if settings.debug:
        renderer = structlog.dev.ConsoleRenderer()
    else:
        renderer = structlog.processors.JSONRenderer()

    processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.dev.set_exc_info,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
    ]
    if not settings.debug:
        # JSON lines carry tracebacks as text
        processors.append(structlog.processors.format_exc_info)
    processors.append(renderer)

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
        cache_logger_on_first_use=True,
    )

    # Fixture factories often use stdlib logging; keep them at the same level
    logging.basicConfig(format="%(message)s", stream=sys.stderr, level=log_level)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a logger whose events carry the emitting module as `logger`."""
    logger: structlog.stdlib.BoundLogger = structlog.get_logger(name).bind(logger=name)
    return logger
