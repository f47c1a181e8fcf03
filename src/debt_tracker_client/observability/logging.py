"""Shared logging utilities for consistent client observability.

Usage example:
    import logging

    from debt_tracker_client.observability.logging import LoggerEventRecorder, get_logger

    logger = get_logger("debt_tracker_client.executor")
    logger.info("Processing %s calls", call_count)

    recorder = LoggerEventRecorder()
    recorder.record(logging.INFO, "call.completed", {"path": "/debts", "status": 200})
"""

from __future__ import annotations

import logging
import time
from typing import override

from ..protocols import EventRecorder

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
_LOG_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S%z"


def get_logger(name: str) -> logging.Logger:
    """Return a standard logger configured for UTC timestamps.

    Args:
        name: Logger name (use a stable module-qualified name).

    Returns:
        A logger with a single stream handler and a consistent UTC format.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(fmt=_LOG_FORMAT, datefmt=_LOG_DATE_FORMAT)
        formatter.converter = time.gmtime
        handler.setFormatter(formatter)
        logger.addHandler(handler)
        logger.setLevel(logging.INFO)
        logger.propagate = False
    return logger


def format_fields(fields: dict[str, object]) -> str:
    """Render structured fields as sorted `key=value` pairs, skipping None."""
    return " ".join(f"{key}={fields[key]}" for key in sorted(fields) if fields[key] is not None)


class LoggerEventRecorder(EventRecorder):
    """Structured event sink that writes through a standard logger."""

    def __init__(self, name: str = "debt_tracker_client.events") -> None:
        self._logger = get_logger(name)

    @override
    def record(self, level: int, message: str, fields: dict[str, object]) -> None:
        rendered = format_fields(fields)
        if rendered:
            self._logger.log(level, "%s %s", message, rendered)
        else:
            self._logger.log(level, "%s", message)
