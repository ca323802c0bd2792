from .store import InMemoryCharacterRepository, InMemoryMemoryStore

__all__ = ["InMemoryCharacterRepository", "InMemoryMemoryStore"]
