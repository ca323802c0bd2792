"""Builders and fakes shared by the test modules."""

import math
from collections.abc import Sequence
from datetime import timedelta

from character_memory.core.errors import EmptyInputError, ProviderError, StoreError
from character_memory.domain.models import (
    Character,
    HealthStatus,
    MemoryChunk,
    MemoryType,
    ScoredMemory,
)
from character_memory.domain.models.utils import utc_now
from character_memory.infrastructure.memory import InMemoryMemoryStore

DIMENSIONS = 4
QUERY_VECTOR = [1.0, 0.0, 0.0, 0.0]


def at_similarity(similarity: float) -> list[float]:
    """A unit vector whose cosine similarity to QUERY_VECTOR is ``similarity``."""
    return [similarity, math.sqrt(max(0.0, 1.0 - similarity**2)), 0.0, 0.0]


def make_character(character_id: str = "mira", **fields) -> Character:
    defaults = {
        "name": "Mira",
        "archetype": "The Sage",
        "chatbot_role": "Librarian of the Sunken Archive",
        "description": "A tall woman with silver-streaked hair and ink-stained fingers.",
        "tone": ["warm", "measured"],
        "vocabulary": "Scholarly",
        "greeting": "Welcome, seeker.",
        "primary_traits": ["curious", "patient", "wry"],
        "approach": "Answer questions with questions",
        "primary_motivation": "the preservation of forgotten knowledge",
        "forbidden_topics": ["the Burning of the Archive"],
    }
    defaults.update(fields)
    return Character(id=character_id, **defaults)


def make_memory(
    character_id: str = "mira",
    embedding: Sequence[float] | None = None,
    memory_type: MemoryType = MemoryType.CONVERSATION,
    age_days: float = 0.0,
    content: str | None = None,
    **fields,
) -> MemoryChunk:
    return MemoryChunk(
        character_id=character_id,
        content=content or f"{memory_type.value} memory",
        memory_type=memory_type,
        embedding=list(embedding or QUERY_VECTOR),
        created_at=utc_now() - timedelta(days=age_days),
        **fields,
    )


class FakeEmbeddingService:
    """Returns preset vectors per text and can be told to fail."""

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        default: list[float] | None = None,
        dimensions: int = DIMENSIONS,
    ) -> None:
        self.vectors = dict(vectors or {})
        self.default = default or list(QUERY_VECTOR)
        self.dimensions = dimensions
        self.fail_all = False
        self.fail_batch = False
        self.fail_texts: set[str] = set()
        self.wrong_dimension_texts: set[str] = set()
        self.calls: list[str] = []
        self.batch_calls = 0

    async def embed_text(self, text: str, input_type: str = "document") -> list[float]:
        if not text.strip():
            raise EmptyInputError()
        self.calls.append(text)
        if self.fail_all or text in self.fail_texts:
            raise ProviderError("embedding provider unavailable")
        if text in self.wrong_dimension_texts:
            return [1.0] * (self.dimensions + 1)
        return list(self.vectors.get(text, self.default))

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        self.batch_calls += 1
        if self.fail_batch or self.fail_all or any(text in self.fail_texts for text in texts):
            raise ProviderError("batch embedding failed")
        return [await self.embed_text(text) for text in texts]

    def get_model_dimensions(self) -> int:
        return self.dimensions

    async def health_check(self) -> HealthStatus:
        return HealthStatus.from_components({"embeddings": not self.fail_all})

    async def close(self) -> None:
        pass


class FailingMemoryStore(InMemoryMemoryStore):
    """In-memory store whose reads or writes can be switched to fail."""

    def __init__(self, dimensions: int | None = DIMENSIONS) -> None:
        super().__init__(dimensions)
        self.fail_reads = False
        self.fail_writes = False

    async def query_top_k(self, *args, **kwargs) -> list[ScoredMemory]:
        if self.fail_reads:
            raise StoreError("store unreachable")
        return await super().query_top_k(*args, **kwargs)

    async def count_by_owner(self, *args, **kwargs) -> int:
        if self.fail_reads:
            raise StoreError("store unreachable")
        return await super().count_by_owner(*args, **kwargs)

    async def replace_by_owner_and_type(self, *args, **kwargs) -> None:
        if self.fail_writes:
            raise StoreError("store unreachable")
        await super().replace_by_owner_and_type(*args, **kwargs)

    async def upsert_many(self, *args, **kwargs) -> None:
        if self.fail_writes:
            raise StoreError("store unreachable")
        await super().upsert_many(*args, **kwargs)

    async def ping(self) -> bool:
        if self.fail_reads:
            raise StoreError("store unreachable")
        return True
