"""Error codes, severity levels and structured error details"""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any

from logfire.integrations.pydantic import PluginSettings
from pydantic import BaseModel, Field, field_serializer


class ErrorLevel(str, Enum):
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"

    def to_logging_level(self) -> int:
        """Numeric stdlib level with the same name"""
        return logging.getLevelNamesMapping()[self.name]


class ErrorCode(str, Enum):
    """Stable codes returned in the ``error_code`` field of API error bodies."""

    # Request and input (1xxx)
    INVALID_REQUEST = "1001"
    INVALID_INPUT = "1002"
    NOT_FOUND = "1003"
    PROCESSING_FAILED = "1004"
    TIMEOUT = "1007"

    # Upstream calls (2xxx)
    RATE_LIMITED = "2003"
    CIRCUIT_OPEN = "2005"

    # Memory store (3xxx)
    DB_CONNECTION = "3001"
    DB_QUERY = "3002"
    DB_RECORD_NOT_FOUND = "3004"

    # Embedding and text generation (4xxx)
    MODEL_ERROR = "4001"
    EMBEDDING_FAILED = "4003"
    DIMENSION_MISMATCH = "4004"

    SERVICE_UNAVAILABLE = "5002"


class ErrorDetails(BaseModel, plugin_settings=PluginSettings(logfire={"record": "all"})):
    """Where an error happened and, when known, which character it concerns"""

    source: str = Field(description="Component or module where the error occurred")
    operation: str = Field(description="Operation being performed when the error occurred")
    character_id: str | None = Field(None, description="Character the operation was acting for")
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC), description="When the error occurred")

    @field_serializer("timestamp")
    def serialize_timestamp(self, timestamp: datetime) -> str:
        return timestamp.isoformat()


class ResourceErrorDetails(ErrorDetails):
    resource_id: str | None = Field(None, description="ID of the resource")
    resource_type: str = Field(description="Type of resource (character, memory, etc.)")
    action: str = Field(description="Action attempted (read, write, delete, etc.)")


class ServiceErrorDetails(ErrorDetails):
    """Details for failures of an external dependency"""

    service_name: str = Field(description="Name of the dependency that failed")
    endpoint: str | None = Field(None, description="Endpoint or URI that was called")
    status_code: int | None = Field(None, description="HTTP or driver status code")
    latency_ms: float | None = Field(None, description="Time spent before the failure in milliseconds")


class DatabaseErrorDetails(ServiceErrorDetails):
    query_type: str | None = Field(None, description="Type of query (read, write, replace, etc.)")
    table: str | None = Field(None, description="Node label or table name")


class AIServiceErrorDetails(ServiceErrorDetails):
    model_name: str | None = Field(None, description="Embedding or generation model")
    batch_size: int | None = Field(None, description="Number of texts in the failed request")
    dimensions: int | None = Field(None, description="Expected embedding dimensions")


def coerce_details(details: ErrorDetails | dict[str, Any] | None) -> ErrorDetails:
    """Accept a details model, a loose mapping, or nothing."""
    if details is None:
        return ErrorDetails(source="unknown", operation="unknown")
    if isinstance(details, ErrorDetails):
        return details
    fields = {"source": "unknown", "operation": "unknown", **details}
    return ErrorDetails(**fields)


class ApplicationError(Exception):
    """Base class for all application errors"""

    def __init__(
        self,
        message: str,
        code: ErrorCode,
        level: ErrorLevel = ErrorLevel.ERROR,
        details: ErrorDetails | dict[str, Any] | None = None,
    ):
        self.message = message
        self.code = code
        self.level = level
        self.details = coerce_details(details)
        super().__init__(message)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(code={self.code.value}, message={self.message!r})"
