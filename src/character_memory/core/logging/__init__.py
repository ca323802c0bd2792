"""Structured logging on structlog, exported to Logfire."""

from .context import bound_log_context, get_log_context, set_log_context
from .setup import get_logger, setup_logging

__all__ = [
    "bound_log_context",
    "get_log_context",
    "get_logger",
    "set_log_context",
    "setup_logging",
]
