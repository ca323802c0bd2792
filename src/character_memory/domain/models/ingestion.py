"""Ingestion outcome models."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class IngestionResult(BaseModel):
    """Outcome of ingesting one character."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character_id: str
    chunks_created: int = 0
    persona_generated: bool = False
    embeddings_failed: int = 0
    errors: list[str] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        """True when at least one biography chunk was written; dropped chunks are listed in ``errors``."""
        return self.chunks_created > 0


class IngestionOutcome(BaseModel):
    """Per-character entry of a batch ingestion run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character_id: str
    result: IngestionResult | None = None
    error: str | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def success(self) -> bool:
        return self.error is None and self.result is not None and self.result.success


class IngestionStatus(BaseModel):
    """Whether a character has been ingested and what it produced."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    character_id: str
    has_full_bio: bool
    has_core_persona: bool
    memory_chunk_count: int
    last_ingested: datetime | None = None

    @computed_field  # type: ignore[prop-decorator]
    @property
    def ingested(self) -> bool:
        return self.has_full_bio and self.memory_chunk_count > 0
