from .services import CharacterRepository, EmbeddingService, InputType, MemoryStore, PersonaSummarizer

__all__ = ["CharacterRepository", "EmbeddingService", "InputType", "MemoryStore", "PersonaSummarizer"]
