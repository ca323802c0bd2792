"""Error handlers for the HTTP surface"""

from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from character_memory.core.logging import get_logger

from .base import ApplicationError, ErrorCode, ErrorLevel
from .error_context import ErrorContext, ErrorContextManager

logger = get_logger(__name__)

STATUS_BY_CODE: dict[ErrorCode, int] = {
    ErrorCode.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.DB_RECORD_NOT_FOUND: status.HTTP_404_NOT_FOUND,
    ErrorCode.INVALID_REQUEST: status.HTTP_400_BAD_REQUEST,
    ErrorCode.INVALID_INPUT: status.HTTP_400_BAD_REQUEST,
    ErrorCode.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCode.TIMEOUT: status.HTTP_504_GATEWAY_TIMEOUT,
    ErrorCode.CIRCUIT_OPEN: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.DB_CONNECTION: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.DB_QUERY: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.EMBEDDING_FAILED: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.MODEL_ERROR: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCode.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
}


def status_code_for(error: ApplicationError) -> int:
    """HTTP status for an application error; unmapped codes are server errors."""
    return STATUS_BY_CODE.get(error.code, status.HTTP_500_INTERNAL_SERVER_ERROR)


class ErrorHandler:
    """Formats errors into the JSON body returned by the API"""

    def __init__(self, context_manager: ErrorContextManager | None = None):
        self.context_manager = context_manager or ErrorContextManager()

    def _format_response(self, error_context: ErrorContext, level: ErrorLevel) -> dict[str, Any]:
        response: dict[str, Any] = {
            "error": str(error_context.error),
            "error_code": ErrorCode.PROCESSING_FAILED.value,
            "level": level.value,
            "trace_id": error_context.trace_id,
            "timestamp": error_context.timestamp.isoformat(),
        }

        # Include rich structured data if it's an ApplicationError
        if isinstance(error_context.error, ApplicationError):
            response["error_code"] = error_context.error.code.value
            response["details"] = error_context.error.details.model_dump(mode="json")

        return response

    async def handle_async(self, error: Exception, **context: Any) -> dict[str, Any]:
        """Capture the error's context and build its response body"""
        level = error.level if isinstance(error, ApplicationError) else ErrorLevel.ERROR
        error_context = await self.context_manager.capture_context(error, **context)
        logger.log(
            level.to_logging_level(),
            f"Request failed: {error!s}",
            error_context=error_context.to_dict(),
        )
        return self._format_response(error_context, level)


def register_error_handlers(app: FastAPI, handler: ErrorHandler | None = None) -> None:
    """Install JSON responses for application errors on ``app``."""
    handler = handler or ErrorHandler()

    @app.exception_handler(ApplicationError)
    async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
        code = status_code_for(exc)
        body = await handler.handle_async(exc, path=request.url.path, status_code=code)
        return JSONResponse(status_code=code, content=body)
