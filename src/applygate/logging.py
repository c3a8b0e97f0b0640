"""Logging utilities for the gate engine."""

from __future__ import annotations

import logging
import sys

import structlog


def configure_logging(level: str = "INFO") -> None:
    """Configure structlog with JSON output on stderr."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    logging.basicConfig(level=log_level, format="%(message)s", stream=sys.stderr)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.add_log_level,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=True,
    )


def _stderr_logger(*args: object) -> structlog.PrintLogger:
    # sys.stderr is looked up per logger, not once at configure time
    return structlog.PrintLogger(file=sys.stderr)
