from .biography import build_full_bio
from .chunker import ChunkSequence, chunk_text, reassemble
from .ingestion_service import CharacterIngestionService
from .persona import AnthropicPersonaSummarizer, RuleBasedPersonaSummarizer, enforce_word_limit
from .retrieval_service import RetrievalService

__all__ = [
    "AnthropicPersonaSummarizer",
    "CharacterIngestionService",
    "ChunkSequence",
    "RetrievalService",
    "RuleBasedPersonaSummarizer",
    "build_full_bio",
    "chunk_text",
    "enforce_word_limit",
    "reassemble",
]
