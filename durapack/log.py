"""Structured logging setup for durable provider adapters."""

from __future__ import annotations

import logging
import os
import sys
from typing import Any

import structlog

LOG_LEVEL_ENV = "DURAKIT_LOG_LEVEL"
LOG_FORMAT_ENV = "DURAKIT_LOG_FORMAT"

_INITIALIZED = False


def _stderr_logger(*_args: Any) -> structlog.PrintLogger:
    # sys.stderr is looked up per call; test runners swap it out.
    return structlog.PrintLogger(file=sys.stderr)


def init_logging(
    *,
    level: str | None = None,
    log_format: str | None = None,
    force: bool = False,
) -> None:
    """Configure structlog once per process activation.

    Later calls are no-ops unless ``force`` is set.
    """
    global _INITIALIZED
    if _INITIALIZED and not force:
        return

    level_name = (level or os.environ.get(LOG_LEVEL_ENV) or "warning").strip().upper()
    format_name = (log_format or os.environ.get(LOG_FORMAT_ENV) or "console").strip().lower()
    numeric_level = getattr(logging, level_name, None)
    if not isinstance(numeric_level, int):
        numeric_level = logging.WARNING

    if format_name == "json":
        renderer: structlog.types.Processor = structlog.processors.JSONRenderer()
    else:
        renderer = structlog.dev.ConsoleRenderer(colors=False)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(numeric_level),
        context_class=dict,
        logger_factory=_stderr_logger,
        cache_logger_on_first_use=False,
    )
    _INITIALIZED = True


def get_logger(component: str, **initial_values: Any) -> Any:
    """Lazy logger that resolves the active configuration on every call."""
    return structlog.get_logger("durapack", component=component, **initial_values)
