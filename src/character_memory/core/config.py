"""Configuration management."""

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class RetrievalDefaults(BaseModel):
    """Process-wide retrieval defaults; per-call overrides are merged on top."""

    max_results: int = Field(default=3, ge=1, description="Maximum memories returned per turn")
    min_similarity: float = Field(default=0.7, ge=0.0, le=1.0, description="Raw cosine similarity floor")
    weight_emotional: bool = Field(default=True, description="Boost memories by emotional weight")
    boost_recent: bool = Field(default=True, description="Boost recently formed memories")
    overfetch_factor: int = Field(default=3, ge=1, description="Candidates fetched per requested result")


class ScoringConfig(BaseModel):
    """Constants of the composite score and of the pruning retention score."""

    recency_floor: float = Field(default=0.8, gt=0.0, le=1.0, description="Recency factor for very old memories")
    recency_half_life_days: float = Field(default=30.0, gt=0.0, description="Age at which recency is halfway to the floor")  # noqa: E501
    emotional_span: float = Field(default=0.5, ge=0.0, description="Extra weight at emotional_weight == 1.0")
    importance_low: float = Field(default=1.0, ge=1.0)
    importance_medium: float = Field(default=1.1, ge=1.0)
    importance_high: float = Field(default=1.25, ge=1.0)

    # Pruning retention weights
    retention_emotional_weight: float = Field(default=0.4, ge=0.0)
    retention_importance_weight: float = Field(default=0.4, ge=0.0)
    retention_recency_weight: float = Field(default=0.2, ge=0.0)


class Settings(BaseSettings):
    # API Keys
    voyage_api_key: SecretStr = SecretStr("")
    anthropic_api_key: SecretStr = SecretStr("")

    # Embeddings
    voyage_model: str = "voyage-3"
    embedding_dimensions: int = Field(default=1024, gt=0, description="Vector size shared by every stored memory")
    embedding_timeout_seconds: float = Field(default=5.0, gt=0.0)
    embedding_concurrency: int = Field(default=4, ge=1, description="Parallel single-item requests when a batch fails")  # noqa: E501

    # Persona generation
    persona_model: str = "claude-3-5-haiku-latest"
    persona_target_words: int = Field(default=200, gt=0)
    persona_max_words: int = Field(default=300, gt=0)
    persona_timeout_seconds: float = Field(default=20.0, gt=0.0)

    # Memory store
    memory_backend: Literal["neo4j", "memory"] = "neo4j"
    neo4j_uri: str = "bolt://localhost:7687"
    neo4j_user: str = "neo4j"
    neo4j_password: SecretStr = SecretStr("password")
    store_timeout_seconds: float = Field(default=2.0, gt=0.0)
    characters_file: Path | None = Field(default=None, description="JSON list of characters seeding the in-memory backend")  # noqa: E501

    # Retries
    max_retries: int = Field(default=3, ge=1)
    retry_initial_delay: float = Field(default=0.25, ge=0.0)
    retry_backoff_factor: float = Field(default=2.0, ge=1.0)
    retry_max_delay: float = Field(default=4.0, ge=0.0)

    # Chunking
    chunk_size: int = Field(default=800, gt=0)
    chunk_overlap: int = Field(default=100, ge=0)

    # Pruning and batch ingestion
    max_memories_per_character: int = Field(default=1000, gt=0)
    ingestion_concurrency: int = Field(default=4, ge=1)

    retrieval: RetrievalDefaults = Field(default_factory=RetrievalDefaults)
    scoring: ScoringConfig = Field(default_factory=ScoringConfig)

    # App config
    debug: bool = False
    service_name: str = "character-memory"

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",  # Ignore extra fields in .env file
        env_nested_delimiter="__",  # Allows RETRIEVAL__MAX_RESULTS=2
    )

    @property
    def live_embeddings(self) -> bool:
        """Whether a live embedding provider credential is configured."""
        return bool(self.voyage_api_key.get_secret_value())

    @property
    def live_persona(self) -> bool:
        """Whether a text-generation provider credential is configured."""
        return bool(self.anthropic_api_key.get_secret_value())


settings = Settings()
