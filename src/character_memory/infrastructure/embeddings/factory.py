"""Dependency injection for embedding services.

The live or offline variant is chosen once, at construction, from the
presence of a provider credential. Callers only ever see the
``EmbeddingService`` protocol.
"""

from __future__ import annotations

from character_memory.core.base import ServiceErrorDetails
from character_memory.core.config import Settings
from character_memory.core.decorators import with_error_handling
from character_memory.core.errors import ServiceError
from character_memory.core.logging import get_logger
from character_memory.domain.services import EmbeddingService
from character_memory.infrastructure.embeddings.hashing import HashingEmbeddingService
from character_memory.infrastructure.embeddings.voyage import VoyageEmbeddingService

logger = get_logger(__name__)


class EmbeddingServiceBuilder:
    """Builder for creating properly configured embedding service instances."""

    def __init__(self, settings: Settings):
        self.settings = settings
        self._api_key: str | None = None
        self._model: str | None = None
        self._force_offline = False

    def with_api_key(self, api_key: str) -> EmbeddingServiceBuilder:
        """Set the API key for the embedding service.

        Args:
            api_key: API key for the service

        Returns:
            Self for method chaining
        """
        self._api_key = api_key
        return self

    def with_model(self, model: str) -> EmbeddingServiceBuilder:
        self._model = model
        return self

    def offline(self, enabled: bool = True) -> EmbeddingServiceBuilder:
        """Use the hashing embedder even when a credential is configured."""
        self._force_offline = enabled
        return self

    @with_error_handling(reraise=True)
    def build(self) -> EmbeddingService:
        """Build the configured embedding service.

        Returns:
            Configured embedding service instance

        Raises:
            ServiceError: If the configured dimensions are invalid
        """
        api_key = self._api_key or self.settings.voyage_api_key.get_secret_value()
        dimensions = self.settings.embedding_dimensions

        service: EmbeddingService
        if api_key and not self._force_offline:
            model = self._model or self.settings.voyage_model
            logger.info(f"Creating VoyageEmbeddingService with model {model}")
            service = VoyageEmbeddingService(
                api_key=api_key,
                model=model,
                dimensions=dimensions,
                timeout=self.settings.embedding_timeout_seconds,
                max_retries=self.settings.max_retries,
                initial_delay=self.settings.retry_initial_delay,
                backoff_factor=self.settings.retry_backoff_factor,
                max_delay=self.settings.retry_max_delay,
            )
        else:
            logger.warning("No embedding provider credential configured, using offline hashing embeddings")
            service = HashingEmbeddingService(dimensions=dimensions)

        validate_embedding_service(service)
        return service


def create_embedding_service(settings: Settings, offline: bool = False) -> EmbeddingService:
    """Convenience function to create an embedding service.

    Example:
        ```python
        embeddings = create_embedding_service(settings)
        retrieval = RetrievalService(characters, store, embeddings, settings)
        ```
    """
    return EmbeddingServiceBuilder(settings).offline(offline).build()


def validate_embedding_service(service: EmbeddingService) -> None:
    """Validate an embedding service instance.

    Raises:
        ServiceError: If validation fails
    """
    dimensions = service.get_model_dimensions()
    if dimensions <= 0:
        raise ServiceError(
            message=f"Invalid embedding dimensions: {dimensions}",
            details=ServiceErrorDetails(
                source="embedding_validation",
                operation="validate",
                service_name=type(service).__name__,
                endpoint="get_model_dimensions",
                status_code=0,
            ),
        )

    logger.debug(f"Embedding service validation passed: {dimensions} dimensions")
