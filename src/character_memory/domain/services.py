"""Domain service protocols."""

from collections.abc import Sequence
from typing import Literal, Protocol, runtime_checkable
from uuid import UUID

from character_memory.domain.models import (
    Character,
    HealthStatus,
    MemoryChunk,
    MemoryType,
    ScoredMemory,
)


InputType = Literal["document", "query"]


@runtime_checkable
class EmbeddingService(Protocol):
    """Protocol for embedding providers."""

    async def embed_text(self, text: str, input_type: InputType = "document") -> list[float]:
        """Embed one non-empty text."""
        ...

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        """Embed documents in input order; the result has one vector per input."""
        ...

    def get_model_dimensions(self) -> int:
        """Length of every vector this provider returns."""
        ...

    async def health_check(self) -> HealthStatus:
        ...

    async def close(self) -> None:
        ...


@runtime_checkable
class PersonaSummarizer(Protocol):
    """Produces a short second-person persona description from a biography."""

    async def summarize(self, character: Character, full_bio: str) -> str:
        ...


@runtime_checkable
class MemoryStore(Protocol):
    """Persistent, character-scoped storage of embedded memory chunks.

    Every operation is scoped to a single ``character_id``; no query ever
    returns another character's memories.
    """

    async def upsert_many(self, chunks: Sequence[MemoryChunk]) -> None:
        """Insert or replace chunks by id."""
        ...

    async def delete_by_owner_and_type(self, character_id: str, memory_type: MemoryType) -> int:
        """Delete every memory of one type for one character; returns the count deleted."""
        ...

    async def replace_by_owner_and_type(
        self,
        character_id: str,
        memory_type: MemoryType,
        chunks: Sequence[MemoryChunk],
    ) -> None:
        """Atomically swap the (character, type) set for ``chunks``.

        Readers observe either the complete old set or the complete new set.
        """
        ...

    async def query_top_k(
        self,
        character_id: str,
        query_vector: Sequence[float],
        k: int,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> list[ScoredMemory]:
        """Top-k memories by raw cosine similarity, descending, ties broken by id."""
        ...

    async def list_by_owner(
        self,
        character_id: str,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> list[MemoryChunk]:
        ...

    async def delete_many(self, character_id: str, ids: Sequence[UUID]) -> int:
        ...

    async def count_by_owner(self, character_id: str, memory_type: MemoryType | None = None) -> int:
        ...

    async def ping(self) -> bool:
        ...


@runtime_checkable
class CharacterRepository(Protocol):
    """Read access to characters plus write access to their derived fields."""

    async def get(self, character_id: str) -> Character | None:
        ...

    async def list_ids(self) -> list[str]:
        ...

    async def update_derived(
        self,
        character_id: str,
        full_bio: str,
        core_persona_summary: str,
    ) -> None:
        """Persist the fields ingestion re-derives."""
        ...

    async def ping(self) -> bool:
        ...
