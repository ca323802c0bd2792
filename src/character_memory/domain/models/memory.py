"""Memory chunk domain models."""

from datetime import datetime
from enum import Enum
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from character_memory.domain.models.utils import ensure_aware, utc_now


class MemoryType(str, Enum):
    """Registry of memory categories stored per character."""

    # Replaced wholesale by ingestion, never evicted by pruning
    BIO_CHUNK = "bio_chunk"

    # Written back from conversations and other observations
    CONVERSATION = "conversation"
    OBSERVATION = "observation"
    EMOTIONAL_EVENT = "emotional_event"
    FACTUAL_KNOWLEDGE = "factual_knowledge"


class Importance(str, Enum):
    """Ordinal importance of a memory."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"

    @property
    def rank(self) -> int:
        """0 for low, 1 for medium, 2 for high."""
        return {Importance.LOW: 0, Importance.MEDIUM: 1, Importance.HIGH: 2}[self]


class MemoryMetadata(BaseModel):
    """Optional metadata attached to a written-back memory."""

    emotional_weight: float = Field(default=0.5, ge=0.0, le=1.0)
    importance: Importance = Importance.MEDIUM

    # Context when the memory was formed
    session_id: str | None = None
    day_number: int | None = None
    time_of_day: str | None = None
    location: str | None = None
    related_characters: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)


class MemoryChunk(MemoryMetadata):
    """One embedded, independently retrievable memory owned by a character."""

    id: UUID = Field(default_factory=uuid4)
    character_id: str = Field(min_length=1)
    content: str = Field(min_length=1)
    memory_type: MemoryType
    embedding: list[float] = Field(min_length=1)
    created_at: datetime = Field(default_factory=utc_now)

    @field_validator("content")
    @classmethod
    def content_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("memory content must not be blank")
        return v

    @field_validator("created_at")
    @classmethod
    def created_at_aware(cls, v: datetime) -> datetime:
        return ensure_aware(v)

    @property
    def dimensions(self) -> int:
        return len(self.embedding)

    def __str__(self) -> str:
        return f"MemoryChunk({self.memory_type.value}, content='{self.content[:50]}...')"


class ScoredMemory(BaseModel):
    """A stored memory together with its raw cosine similarity to a query."""

    chunk: MemoryChunk
    similarity: float = Field(ge=-1.0, le=1.0)


class MemoryStats(BaseModel):
    """Aggregate view over a character's memory set."""

    character_id: str
    total_memories: int = 0
    memory_type_breakdown: dict[str, int] = Field(default_factory=dict)
    average_emotional_weight: float = 0.0
    oldest_memory: datetime | None = None
    newest_memory: datetime | None = None

    @classmethod
    def from_chunks(cls, character_id: str, chunks: list[MemoryChunk]) -> "MemoryStats":
        if not chunks:
            return cls(character_id=character_id)

        breakdown: dict[str, int] = {}
        for chunk in chunks:
            breakdown[chunk.memory_type.value] = breakdown.get(chunk.memory_type.value, 0) + 1

        dates = [chunk.created_at for chunk in chunks]
        return cls(
            character_id=character_id,
            total_memories=len(chunks),
            memory_type_breakdown=breakdown,
            average_emotional_weight=sum(c.emotional_weight for c in chunks) / len(chunks),
            oldest_memory=min(dates),
            newest_memory=max(dates),
        )
