from .character import Character
from .health import HealthStatus
from .ingestion import IngestionOutcome, IngestionResult, IngestionStatus
from .memory import Importance, MemoryChunk, MemoryMetadata, MemoryStats, MemoryType, ScoredMemory
from .retrieval import (
    DEFAULT_MEMORY_TYPES,
    RetrievalConfig,
    RetrievalContext,
    RetrievalOverrides,
    RetrievedMemory,
)

__all__ = [
    "DEFAULT_MEMORY_TYPES",
    "Character",
    "HealthStatus",
    "Importance",
    "IngestionOutcome",
    "IngestionResult",
    "IngestionStatus",
    "MemoryChunk",
    "MemoryMetadata",
    "MemoryStats",
    "MemoryType",
    "RetrievalConfig",
    "RetrievalContext",
    "RetrievalOverrides",
    "RetrievedMemory",
    "ScoredMemory",
]
