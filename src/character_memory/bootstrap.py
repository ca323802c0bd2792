"""Service wiring shared by the HTTP application and the command-line scripts."""

import json
from collections.abc import AsyncGenerator
from contextlib import AsyncExitStack, asynccontextmanager
from dataclasses import dataclass
from pathlib import Path

import anthropic
from pydantic import TypeAdapter

from character_memory.core.config import Settings
from character_memory.core.locks import KeyedLock
from character_memory.core.logging import get_logger
from character_memory.domain.models import Character
from character_memory.domain.services import CharacterRepository, EmbeddingService, MemoryStore, PersonaSummarizer
from character_memory.infrastructure.embeddings import create_embedding_service
from character_memory.infrastructure.memory import InMemoryCharacterRepository, InMemoryMemoryStore
from character_memory.infrastructure.neo4j import (
    Neo4jCharacterRepository,
    Neo4jExecutor,
    Neo4jMemoryStore,
    create_neo4j_driver,
    ensure_schema,
)
from character_memory.services import (
    AnthropicPersonaSummarizer,
    CharacterIngestionService,
    RetrievalService,
    RuleBasedPersonaSummarizer,
)

logger = get_logger(__name__)

_characters_adapter = TypeAdapter(list[Character])


@dataclass
class Services:
    """The two entry-point services and the collaborators they share."""

    ingestion: CharacterIngestionService
    retrieval: RetrievalService
    embeddings: EmbeddingService


def load_characters(path: Path) -> list[Character]:
    """Read a JSON array of characters."""
    characters = _characters_adapter.validate_python(json.loads(path.read_text(encoding="utf-8")))
    logger.info(f"Loaded {len(characters)} characters", path=str(path))
    return characters


def create_summarizer(settings: Settings) -> PersonaSummarizer:
    """Claude-written personas when a credential is configured, rule-based otherwise."""
    fallback = RuleBasedPersonaSummarizer(
        target_words=settings.persona_target_words,
        max_words=settings.persona_max_words,
    )
    if not settings.live_persona:
        logger.warning("No text-generation credential configured, using rule-based persona summaries")
        return fallback

    client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key.get_secret_value())
    return AnthropicPersonaSummarizer(
        client=client,
        model=settings.persona_model,
        fallback=fallback,
        timeout=settings.persona_timeout_seconds,
    )


@asynccontextmanager
async def create_services(settings: Settings, offline: bool = False) -> AsyncGenerator[Services]:
    """Build the ingestion and retrieval services for the configured backend.

    Args:
        settings: Process configuration
        offline: Use the hashing embedder even when a provider credential is set

    Yields:
        Services: Wired services; backend connections close on exit
    """
    async with AsyncExitStack() as stack:
        embeddings = create_embedding_service(settings, offline=offline)
        stack.push_async_callback(embeddings.close)

        store: MemoryStore
        characters: CharacterRepository
        if settings.memory_backend == "neo4j":
            driver = await stack.enter_async_context(create_neo4j_driver(settings))
            await ensure_schema(driver)
            executor = Neo4jExecutor.from_settings(driver, settings)
            store = Neo4jMemoryStore(executor)
            characters = Neo4jCharacterRepository(executor)
        else:
            seed = load_characters(settings.characters_file) if settings.characters_file else []
            store = InMemoryMemoryStore(dimensions=embeddings.get_model_dimensions())
            characters = InMemoryCharacterRepository(seed)

        # Ingestion and retrieval must serialize on the same per-character locks
        locks = KeyedLock()
        summarizer = create_summarizer(settings)

        logger.info(
            "Services initialized",
            backend=settings.memory_backend,
            embeddings=type(embeddings).__name__,
            summarizer=type(summarizer).__name__,
        )
        yield Services(
            ingestion=CharacterIngestionService(characters, store, embeddings, summarizer, settings, locks),
            retrieval=RetrievalService(characters, store, embeddings, settings, locks),
            embeddings=embeddings,
        )
