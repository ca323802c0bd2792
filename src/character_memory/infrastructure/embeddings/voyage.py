"""Voyage AI embedding service."""

from collections.abc import Sequence
from typing import Any, cast

import voyageai
import voyageai.error

from character_memory.core.base import AIServiceErrorDetails, ApplicationError, ErrorLevel
from character_memory.core.circuit_breaker import CircuitBreaker, RetryWithCircuitBreaker
from character_memory.core.decorators import with_error_handling
from character_memory.core.errors import (
    EmptyInputError,
    ProviderError,
    RateLimitError,
    TimeoutError,
)
from character_memory.core.logging import get_logger
from character_memory.domain.models import HealthStatus
from character_memory.domain.services import InputType

logger = get_logger(__name__)

MAX_BATCH_SIZE = 128

_TRANSIENT_ERRORS = (
    voyageai.error.Timeout,
    voyageai.error.APIConnectionError,
    voyageai.error.ServiceUnavailableError,
)


class VoyageEmbeddingService:
    """Voyage AI embedding service implementation.

    Every request is bounded by a per-attempt timeout and retried with
    exponential backoff on rate limiting and timeouts. Malformed responses
    (missing vectors, wrong count, wrong dimension) are never retried.
    """

    def __init__(
        self,
        api_key: str,
        model: str = "voyage-3",
        dimensions: int = 1024,
        timeout: float = 5.0,
        max_retries: int = 3,
        initial_delay: float = 0.25,
        backoff_factor: float = 2.0,
        max_delay: float = 4.0,
        client: Any | None = None,
    ) -> None:
        """Initialize the Voyage embedding service.

        Args:
            api_key: Voyage API key
            model: Embedding model name
            dimensions: Expected vector length for ``model``
            timeout: Seconds before a single request is abandoned
            max_retries: Attempts per request, including the first
            initial_delay: First backoff delay in seconds
            backoff_factor: Multiplier applied to the delay after each retry
            max_delay: Upper bound on the backoff delay
            client: Pre-built client exposing ``embed``; built from ``api_key`` when omitted
        """
        self.model = model
        self.dimensions = dimensions
        # voyageai client doesn't expose a public type, so we use Any here
        self.client: Any = client or voyageai.AsyncClient(api_key=api_key, max_retries=0)

        self._circuit_breaker: CircuitBreaker = CircuitBreaker(
            name="voyage_api",
            failure_threshold=5,
            recovery_timeout=30.0,
            expected_exception_types=(RateLimitError, TimeoutError, ProviderError),
            success_threshold=2,
        )
        self._retry_handler = RetryWithCircuitBreaker(
            circuit_breaker=self._circuit_breaker,
            max_retries=max_retries,
            initial_delay=initial_delay,
            backoff_factor=backoff_factor,
            max_delay=max_delay,
            attempt_timeout=timeout,
            retryable_exceptions=(RateLimitError, TimeoutError),
        )

    def _details(self, operation: str, batch_size: int, status_code: int | None = None) -> AIServiceErrorDetails:
        return AIServiceErrorDetails(
            source="VoyageEmbeddingService",
            operation=operation,
            service_name="Voyage AI",
            endpoint="/embeddings",
            status_code=status_code,
            model_name=self.model,
            batch_size=batch_size,
            dimensions=self.dimensions,
        )

    def _handle_error(self, e: Exception, texts: Sequence[str]) -> ApplicationError:
        """Map client errors to our exception types."""
        error_msg = str(e).lower()
        if isinstance(e, voyageai.error.RateLimitError) or "rate limit" in error_msg:
            return RateLimitError(
                message="Rate limit exceeded for embeddings API",
                details=self._details("embed_batch", len(texts), status_code=429),
            )
        if isinstance(e, _TRANSIENT_ERRORS) or "timeout" in error_msg or "connection" in error_msg:
            return TimeoutError(
                message="Embeddings API request timed out",
                details=self._details("embed_batch", len(texts), status_code=408),
            )
        return ProviderError(
            message=f"Failed to generate embeddings: {e!s}",
            details=self._details("embed_batch", len(texts)),
        )

    async def _call_voyage_api_internal(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        """
        Internal method to call Voyage API.

        This is wrapped by the circuit breaker.
        """
        try:
            response = await self.client.embed(texts=texts, model=self.model, input_type=input_type)
        except ApplicationError:
            raise
        except Exception as e:
            raise self._handle_error(e, texts) from e

        embeddings = getattr(response, "embeddings", None) or []
        if len(embeddings) != len(texts):
            raise ProviderError(
                message=f"Voyage API returned {len(embeddings)} embeddings for {len(texts)} texts",
                details=self._details("embed_batch", len(texts), status_code=200),
            )

        for embedding in embeddings:
            if len(embedding) != self.dimensions:
                raise ProviderError(
                    message=f"Voyage API returned a {len(embedding)}-dimensional vector, "
                    f"expected {self.dimensions}",
                    details=self._details("embed_batch", len(texts), status_code=200),
                )

        return [cast("list[float]", list(emb)) for emb in embeddings]

    async def _embed(self, texts: list[str], input_type: InputType) -> list[list[float]]:
        try:
            return await self._retry_handler.call_async(self._call_voyage_api_internal, texts, input_type)
        except ProviderError:
            raise
        except ApplicationError as e:
            raise ProviderError(
                message=f"Embedding request failed: {e.message}",
                details=self._details("embed_batch", len(texts), status_code=503),
            ) from e

    @with_error_handling(error_level=ErrorLevel.WARNING, reraise=True)
    async def embed_text(self, text: str, input_type: InputType = "document") -> list[float]:
        """Generate an embedding vector for one text."""
        if not text.strip():
            raise EmptyInputError("Cannot embed empty text")
        embeddings = await self._embed([text], input_type)
        return embeddings[0]

    @with_error_handling(error_level=ErrorLevel.WARNING, reraise=True)
    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """
        Generate document embeddings for a batch of texts.

        Requests are sliced into groups of 128; the result keeps input order.

        Args:
            texts: List of texts to embed

        Returns:
            One embedding vector per input text

        Raises:
            EmptyInputError: If any text is empty
            ProviderError: If the provider fails or returns malformed data
        """
        if not texts:
            return []

        if any(not text.strip() for text in texts):
            raise EmptyInputError(
                "Batch contains empty texts",
                details={"source": "voyage_embedding", "operation": "embed_batch", "batch_size": len(texts)},
            )

        results: list[list[float]] = []
        for start in range(0, len(texts), MAX_BATCH_SIZE):
            batch = list(texts[start:start + MAX_BATCH_SIZE])
            results.extend(await self._embed(batch, "document"))
        return results

    def get_model_dimensions(self) -> int:
        return self.dimensions

    async def health_check(self) -> HealthStatus:
        if self._circuit_breaker.is_open:
            return HealthStatus.from_components({"embeddings": False})
        try:
            await self._embed(["health check"], "query")
        except ApplicationError as e:
            logger.warning("Embedding provider health check failed", error=e.message)
            return HealthStatus.from_components({"embeddings": False})
        return HealthStatus.from_components({"embeddings": True})

    async def close(self) -> None:
        """Close the client connection."""
        logger.debug("Voyage embedding service closed")
