"""Logging context utilities for structured logging.

Request-scoped context (character id, operation) is kept in a ContextVar and
mirrored into structlog's contextvars so that every log line emitted while it
is set carries the same fields, including lines from nested services.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Any

import structlog

_log_context: ContextVar[dict[str, Any] | None] = ContextVar("log_context", default=None)


def get_log_context() -> dict[str, Any]:
    """Get a copy of the current logging context."""
    context: dict[str, Any] | None = _log_context.get()
    if context is None:
        return {}
    return context.copy()


def set_log_context(context: dict[str, Any]) -> None:
    """Replace the logging context.

    Args:
        context: Dictionary with logging context data
    """
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)
    _log_context.set(dict(context))


@contextmanager
def bound_log_context(**values: Any) -> Iterator[dict[str, Any]]:
    """Temporarily add fields to the logging context, restoring it on exit."""
    previous = get_log_context()
    merged = {**previous, **values}
    set_log_context(merged)
    try:
        yield merged
    finally:
        set_log_context(previous)

