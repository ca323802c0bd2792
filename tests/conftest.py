"""Shared pytest fixtures."""

import pytest

from character_memory.core.config import Settings
from character_memory.core.locks import KeyedLock
from character_memory.infrastructure.memory import InMemoryCharacterRepository
from character_memory.services import CharacterIngestionService, RetrievalService, RuleBasedPersonaSummarizer
from factories import DIMENSIONS, FailingMemoryStore, FakeEmbeddingService, make_character


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        memory_backend="memory",
        embedding_dimensions=DIMENSIONS,
        max_memories_per_character=50,
    )


@pytest.fixture
def embeddings() -> FakeEmbeddingService:
    return FakeEmbeddingService()


@pytest.fixture
def store() -> FailingMemoryStore:
    return FailingMemoryStore()


@pytest.fixture
def characters() -> InMemoryCharacterRepository:
    return InMemoryCharacterRepository([make_character()])


@pytest.fixture
def locks() -> KeyedLock:
    return KeyedLock()


@pytest.fixture
def summarizer(settings) -> RuleBasedPersonaSummarizer:
    return RuleBasedPersonaSummarizer(settings.persona_target_words, settings.persona_max_words)


@pytest.fixture
def ingestion(characters, store, embeddings, summarizer, settings, locks) -> CharacterIngestionService:
    return CharacterIngestionService(characters, store, embeddings, summarizer, settings, locks)


@pytest.fixture
def retrieval(characters, store, embeddings, settings, locks) -> RetrievalService:
    return RetrievalService(characters, store, embeddings, settings, locks)
