"""Structured logging configuration.

This module builds structlog loggers with a stable JSON format.
Levels are passed explicitly per logger instead of set process-wide.
"""

from __future__ import annotations

import logging
import sys
from typing import Any

import structlog

from core.constants import DEFAULT_LOG_LEVEL

_LEVEL_NUMBERS = {
    "debug": logging.DEBUG,
    "info": logging.INFO,
    "warn": logging.WARNING,
    "warning": logging.WARNING,
    "error": logging.ERROR,
}


def get_logger(name: str, level: str = DEFAULT_LOG_LEVEL) -> Any:
    """Return a level-filtered structured logger.

    Args:
        name: Logger name, usually __name__.
        level: Minimum level name such as ``"debug"`` or ``"error"``.

    Returns:
        A structlog bound logger emitting JSON lines to stderr.
    """
    return structlog.wrap_logger(
        structlog.PrintLogger(file=sys.stderr),
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level_number(level)),
        logger_name=name,
    )


def level_number(level: str) -> int:
    """Map a level name onto its stdlib numeric value.

    Unknown names fall back to INFO; config parsing rejects them earlier.
    """
    return _LEVEL_NUMBERS.get(level.lower(), logging.INFO)
