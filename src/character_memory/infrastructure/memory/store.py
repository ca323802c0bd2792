"""Process-local memory store and character repository.

Backs the offline mode and the test suite. Every mutation completes without
yielding to the event loop, so replace operations are atomic with respect to
concurrent readers.
"""

from collections.abc import Iterable, Sequence
from uuid import UUID

from character_memory.core.errors import CharacterNotFound, DimensionMismatchError
from character_memory.core.logging import get_logger
from character_memory.domain.models import Character, MemoryChunk, MemoryType, ScoredMemory
from character_memory.domain.models.utils import utc_now
from character_memory.infrastructure.embeddings.similarity import cosine_similarity

logger = get_logger(__name__)


class InMemoryMemoryStore:
    """Memory chunks held in a dict keyed by character, then by chunk id."""

    def __init__(self, dimensions: int | None = None) -> None:
        self.dimensions = dimensions
        self._memories: dict[str, dict[UUID, MemoryChunk]] = {}

    def _check_dimensions(self, chunks: Iterable[MemoryChunk]) -> None:
        for chunk in chunks:
            if self.dimensions is None:
                self.dimensions = chunk.dimensions
            elif chunk.dimensions != self.dimensions:
                raise DimensionMismatchError(expected=self.dimensions, actual=chunk.dimensions)

    def _owned(self, character_id: str) -> dict[UUID, MemoryChunk]:
        return self._memories.get(character_id, {})

    async def upsert_many(self, chunks: Sequence[MemoryChunk]) -> None:
        self._check_dimensions(chunks)
        for chunk in chunks:
            self._memories.setdefault(chunk.character_id, {})[chunk.id] = chunk

    async def delete_by_owner_and_type(self, character_id: str, memory_type: MemoryType) -> int:
        owned = self._owned(character_id)
        doomed = [memory_id for memory_id, chunk in owned.items() if chunk.memory_type == memory_type]
        for memory_id in doomed:
            del owned[memory_id]
        return len(doomed)

    async def replace_by_owner_and_type(
        self,
        character_id: str,
        memory_type: MemoryType,
        chunks: Sequence[MemoryChunk],
    ) -> None:
        foreign = [c for c in chunks if c.character_id != character_id or c.memory_type != memory_type]
        if foreign:
            raise ValueError("replacement chunks must all belong to the replaced character and type")
        self._check_dimensions(chunks)

        kept = {mid: c for mid, c in self._owned(character_id).items() if c.memory_type != memory_type}
        kept.update((chunk.id, chunk) for chunk in chunks)
        self._memories[character_id] = kept
        logger.debug(
            "Replaced memory set",
            character_id=character_id,
            memory_type=memory_type.value,
            count=len(chunks),
        )

    async def query_top_k(
        self,
        character_id: str,
        query_vector: Sequence[float],
        k: int,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> list[ScoredMemory]:
        if k <= 0:
            return []
        candidates = [
            ScoredMemory(chunk=chunk, similarity=cosine_similarity(query_vector, chunk.embedding))
            for chunk in self._owned(character_id).values()
            if memory_types is None or chunk.memory_type in memory_types
        ]
        candidates.sort(key=lambda scored: (-scored.similarity, str(scored.chunk.id)))
        return candidates[:k]

    async def list_by_owner(
        self,
        character_id: str,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> list[MemoryChunk]:
        chunks = [
            chunk
            for chunk in self._owned(character_id).values()
            if memory_types is None or chunk.memory_type in memory_types
        ]
        return sorted(chunks, key=lambda c: (c.created_at, str(c.id)))

    async def delete_many(self, character_id: str, ids: Sequence[UUID]) -> int:
        owned = self._owned(character_id)
        deleted = 0
        for memory_id in ids:
            if owned.pop(memory_id, None) is not None:
                deleted += 1
        return deleted

    async def count_by_owner(self, character_id: str, memory_type: MemoryType | None = None) -> int:
        owned = self._owned(character_id)
        if memory_type is None:
            return len(owned)
        return sum(1 for chunk in owned.values() if chunk.memory_type == memory_type)

    async def ping(self) -> bool:
        return True


class InMemoryCharacterRepository:
    """Characters held in a dict keyed by id."""

    def __init__(self, characters: Iterable[Character] = ()) -> None:
        self._characters: dict[str, Character] = {c.id: c for c in characters}

    def add(self, character: Character) -> None:
        self._characters[character.id] = character

    async def get(self, character_id: str) -> Character | None:
        return self._characters.get(character_id)

    async def list_ids(self) -> list[str]:
        return sorted(self._characters)

    async def update_derived(self, character_id: str, full_bio: str, core_persona_summary: str) -> None:
        character = self._characters.get(character_id)
        if character is None:
            raise CharacterNotFound(character_id)
        self._characters[character_id] = character.model_copy(
            update={
                "full_bio": full_bio,
                "core_persona_summary": core_persona_summary,
                "updated_at": utc_now(),
            }
        )

    async def ping(self) -> bool:
        return True
