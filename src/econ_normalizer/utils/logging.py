"""Structured logging setup using structlog.

The level comes from ``Settings.log_level`` (``ECON_LOG_LEVEL``). Events go to
stderr as JSON; normalized values are the library's output and stdout stays
free for them.
"""

from __future__ import annotations

import logging
import sys

import structlog

from ..config import Settings


def resolve_level(log_level: str) -> int:
    """Map a level name such as ``"warning"`` onto its ``logging`` number."""
    level = logging.getLevelNamesMapping().get(log_level.strip().upper())
    if level is None:
        raise ValueError(f"Unknown log level: {log_level!r}")
    return level


def setup_logging(settings: Settings | None = None, *, force: bool = False) -> None:
    """Configure structlog for the package.

    An existing structlog configuration is left alone unless *force* is set,
    so an embedding application keeps its own processors.
    """
    if structlog.is_configured() and not force:
        return
    settings = settings or Settings()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(resolve_level(settings.log_level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sys.stderr),
    )


def get_logger(name: str):
    """Logger whose events carry ``component=name``."""
    return structlog.get_logger(component=name)
