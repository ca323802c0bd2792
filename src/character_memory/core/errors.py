"""Specific error types for the character memory engine."""

from typing import Any

from .base import (
    ApplicationError,
    DatabaseErrorDetails,
    ErrorCode,
    ErrorDetails,
    ErrorLevel,
    ResourceErrorDetails,
    ServiceErrorDetails,
)


class ServiceError(ApplicationError):
    """Error from external service calls."""

    def __init__(
        self,
        message: str,
        details: ServiceErrorDetails | dict[str, Any] | None = None,
        code: ErrorCode = ErrorCode.SERVICE_UNAVAILABLE,
    ):
        super().__init__(
            message=message,
            code=code,
            level=ErrorLevel.ERROR,
            details=details or ServiceErrorDetails(
                source="service",
                operation="external_call",
                service_name="unknown"
            )
        )


class ProviderError(ServiceError):
    """Embedding or text-generation provider unreachable or returned malformed data."""

    def __init__(self, message: str, details: ServiceErrorDetails | dict[str, Any] | None = None):
        super().__init__(
            message=message,
            details=details or ServiceErrorDetails(
                source="provider",
                operation="embed",
                service_name="embedding_provider"
            ),
            code=ErrorCode.EMBEDDING_FAILED,
        )


class StoreError(ServiceError):
    """Memory store unreachable or query malformed."""

    def __init__(self, message: str, details: DatabaseErrorDetails | dict[str, Any] | None = None):
        super().__init__(
            message=message,
            details=details or DatabaseErrorDetails(
                source="memory_store",
                operation="query",
                service_name="memory_store"
            ),
            code=ErrorCode.DB_QUERY,
        )


class CharacterNotFound(ApplicationError):
    """The character id does not resolve to a known character."""

    def __init__(self, character_id: str, details: ErrorDetails | None = None):
        self.character_id = character_id
        super().__init__(
            message=f"Character with ID {character_id} not found",
            code=ErrorCode.NOT_FOUND,
            level=ErrorLevel.WARNING,
            details=details or ResourceErrorDetails(
                source="character_repository",
                operation="get",
                resource_id=character_id,
                character_id=character_id,
                resource_type="character",
                action="read",
            ),
        )


class EmptyInputError(ApplicationError):
    """Empty or whitespace-only text handed to chunking or embedding."""

    def __init__(self, message: str = "Cannot process empty text", details: dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.INVALID_INPUT,
            level=ErrorLevel.DEBUG,
            details=details
        )


class DimensionMismatchError(ApplicationError):
    """Vectors of unequal length, or a vector of the wrong model dimension."""

    def __init__(self, expected: int, actual: int, details: dict | None = None):
        self.expected = expected
        self.actual = actual
        super().__init__(
            message=f"Embedding dimension mismatch: expected {expected}, got {actual}",
            code=ErrorCode.DIMENSION_MISMATCH,
            level=ErrorLevel.ERROR,
            details=details
        )


class RateLimitError(ApplicationError):
    """Rate limiting errors."""

    def __init__(self, message: str, details: ServiceErrorDetails | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.RATE_LIMITED,
            level=ErrorLevel.WARNING,
            details=details
        )


class TimeoutError(ApplicationError):
    """Timeout errors."""

    def __init__(self, message: str, details: ServiceErrorDetails | dict | None = None):
        super().__init__(
            message=message,
            code=ErrorCode.TIMEOUT,
            level=ErrorLevel.ERROR,
            details=details
        )
