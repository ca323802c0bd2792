"""Error context management"""

from datetime import UTC, datetime
from types import TracebackType
from typing import Any
from uuid import uuid4

from .base import ApplicationError
from .logging import get_log_context, get_logger

logger = get_logger(__name__)


class ErrorContext:
    """Captures and stores context around an error"""

    def __init__(self, error: Exception, trace_id: str | None = None, **context: Any):
        self.error = error
        self.trace_id = trace_id or str(uuid4())
        self.timestamp = datetime.now(UTC)
        # Request-scoped logging context (character id, operation) travels with the error
        self.context = {**get_log_context(), **context}

    def to_dict(self) -> dict[str, Any]:
        """Convert context to dictionary format with structured details from ApplicationError"""
        result: dict[str, Any] = {
            "error_type": self.error.__class__.__name__,
            "error_message": str(self.error),
            "trace_id": self.trace_id,
            "timestamp": self.timestamp.isoformat(),
        }

        if isinstance(self.error, ApplicationError):
            result["error_code"] = self.error.code.value
            result["error_level"] = self.error.level.value
            # Prefix the details fields to avoid collisions
            for key, value in self.error.details.model_dump().items():
                result[f"details.{key}"] = value

        for key, value in self.context.items():
            result[f"context.{key}"] = value

        return result


class ErrorContextManager:
    """Manages error contexts across the application"""

    def __init__(self, error: Exception | None = None, **context: Any) -> None:
        self._contexts: dict[str, ErrorContext] = {}
        self._error = error
        self._context = context
        self._current_context: ErrorContext | None = None

    def _enter(self) -> ErrorContext:
        if self._error is None:
            raise ValueError("No error provided for context")
        self._current_context = ErrorContext(self._error, **self._context)
        self._contexts[self._current_context.trace_id] = self._current_context
        return self._current_context

    def _exit(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
    ) -> None:
        # A new exception raised while handling the original one gets logged
        # here; reraised errors from the decorators are expected and ignored
        if exc_type is not None and exc_val is not None and exc_val is not self._error:
            logger.error(
                f"Exception during error context handling: {exc_type.__name__}: {exc_val}",
                exc_info=exc_val,
            )

    async def __aenter__(self) -> ErrorContext:
        """Enter async context, capturing error context"""
        return self._enter()

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit async context"""
        self._exit(exc_type, exc_val)

    def __enter__(self) -> ErrorContext:
        """Enter sync context, capturing error context"""
        return self._enter()

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit sync context"""
        self._exit(exc_type, exc_val)

    async def capture_context(self, error: Exception, **context: Any) -> ErrorContext:
        """Capture error context with additional data"""
        error_context = ErrorContext(error, **context)
        self._contexts[error_context.trace_id] = error_context
        return error_context

    def get_context(self, trace_id: str) -> ErrorContext | None:
        """Retrieve error context by trace ID"""
        return self._contexts.get(trace_id)
