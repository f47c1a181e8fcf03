"""Observability helpers (logging)."""

from .logging import LoggerEventRecorder, get_logger

__all__ = ["LoggerEventRecorder", "get_logger"]
