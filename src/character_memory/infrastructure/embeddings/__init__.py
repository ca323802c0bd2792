from .factory import EmbeddingServiceBuilder, create_embedding_service, validate_embedding_service
from .hashing import HashingEmbeddingService
from .similarity import cosine_similarity
from .voyage import VoyageEmbeddingService

__all__ = [
    "EmbeddingServiceBuilder",
    "HashingEmbeddingService",
    "VoyageEmbeddingService",
    "cosine_similarity",
    "create_embedding_service",
    "validate_embedding_service",
]
