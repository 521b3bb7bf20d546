"""
Logging utilities for skillloop.

All modules log through child loggers of the ``skillloop`` package logger:

    skillloop.agent            steps, dispatches, rejected and failed calls,
                               cancellation points, exhausted step budgets
    skillloop.expander         skill cycle entry/exit, prompt resolution failures
    skillloop.supersession     runs superseded by a newer run in the session
    skillloop.adapters.openai  cancelled streams, unrecognized response events

Per-call failures are logged at WARNING; backend failures are reported as
``error`` events only. Nothing here runs on import; call ``setup_logging``
from the application.
"""

from __future__ import annotations

import logging
import sys
from typing import TextIO

_PACKAGE = "skillloop"

# Package root logger
_root_logger = logging.getLogger(_PACKAGE)


def _coerce_level(level: str | int) -> int:
    if isinstance(level, str):
        return getattr(logging, level.upper(), logging.INFO)
    return level


def setup_logging(
    level: str | int = "INFO",
    format: str | None = None,
    stream: TextIO | None = None,
    file: str | None = None,
) -> None:
    """
    Configure logging for the agent loop.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL) or int
        format: Custom log format string
        stream: Output stream (defaults to stderr)
        file: Optional file path to write logs

    Example:
        from skillloop.logging import setup_logging

        setup_logging("DEBUG")
        setup_logging("INFO", file="agent.log")
    """
    level = _coerce_level(level)
    _root_logger.setLevel(level)
    _root_logger.handlers.clear()

    if format is None:
        format = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
    formatter = logging.Formatter(format)

    stream_handler = logging.StreamHandler(stream or sys.stderr)
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(level)
    _root_logger.addHandler(stream_handler)

    if file:
        file_handler = logging.FileHandler(file)
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        _root_logger.addHandler(file_handler)


def get_logger(name: str) -> logging.Logger:
    """
    Get a child logger for a submodule.

    Args:
        name: Submodule name (e.g., "agent", "expander", "adapters.openai").
            A name already prefixed with ``skillloop.`` is used as is.

    Returns:
        Logger instance
    """
    if name.startswith(f"{_PACKAGE}."):
        return logging.getLogger(name)
    return logging.getLogger(f"{_PACKAGE}.{name}")


def set_level(level: str | int) -> None:
    """Set the log level for the package logger."""
    _root_logger.setLevel(_coerce_level(level))


def disable() -> None:
    """Disable all skillloop logging."""
    _root_logger.disabled = True


def enable() -> None:
    """Re-enable skillloop logging."""
    _root_logger.disabled = False
