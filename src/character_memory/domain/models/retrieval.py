"""Retrieval request and response models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from character_memory.core.config import RetrievalDefaults
from character_memory.domain.models.memory import Importance, MemoryType

DEFAULT_MEMORY_TYPES: tuple[MemoryType, ...] = (
    MemoryType.BIO_CHUNK,
    MemoryType.CONVERSATION,
    MemoryType.EMOTIONAL_EVENT,
    MemoryType.FACTUAL_KNOWLEDGE,
)


class RetrievalOverrides(BaseModel):
    """Per-call overrides; unset fields fall back to process defaults."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    max_results: int | None = Field(default=None, ge=1)
    min_similarity: float | None = Field(default=None, ge=0.0, le=1.0)
    memory_types: list[MemoryType] | None = None
    weight_emotional: bool | None = None
    boost_recent: bool | None = None


class RetrievalConfig(RetrievalDefaults):
    """Effective retrieval configuration for one call."""

    memory_types: list[MemoryType] = Field(default_factory=lambda: list(DEFAULT_MEMORY_TYPES))

    @classmethod
    def from_defaults(cls, defaults: RetrievalDefaults) -> "RetrievalConfig":
        return cls(**defaults.model_dump())

    def merged(self, overrides: RetrievalOverrides | None) -> "RetrievalConfig":
        """Return a copy with every explicitly set override applied."""
        if overrides is None:
            return self
        updates = overrides.model_dump(exclude_none=True)
        return self.model_copy(update=updates)


class RetrievedMemory(BaseModel):
    """A memory selected for prompt context, with its score breakdown."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    content: str
    memory_type: MemoryType
    similarity: float
    score: float
    emotional_weight: float
    importance: Importance
    created_at: datetime


class RetrievalContext(BaseModel):
    """Everything a dialogue turn needs from memory."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character_id: str
    core_persona: str
    relevant_memories: list[RetrievedMemory] = Field(default_factory=list)
    total_memories: int = 0
    search_query: str = ""
    retrieval_time_ms: float = 0.0
    degraded: bool = False

    @property
    def memory_texts(self) -> list[str]:
        return [memory.content for memory in self.relevant_memories]
