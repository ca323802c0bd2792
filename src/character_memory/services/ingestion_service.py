"""Character biography ingestion.

Turns a character's structured description into a full biography, a core
persona summary and a set of embedded ``bio_chunk`` memories, replacing the
previous set atomically.
"""

import asyncio

import logfire

from character_memory.core.base import ApplicationError, ErrorLevel
from character_memory.core.config import Settings
from character_memory.core.decorators import with_error_handling
from character_memory.core.errors import CharacterNotFound, EmptyInputError, ProviderError, StoreError
from character_memory.core.locks import KeyedLock
from character_memory.core.logging import bound_log_context, get_logger
from character_memory.domain.models import (
    Character,
    HealthStatus,
    IngestionOutcome,
    IngestionResult,
    IngestionStatus,
    MemoryChunk,
    MemoryType,
)
from character_memory.domain.services import (
    CharacterRepository,
    EmbeddingService,
    MemoryStore,
    PersonaSummarizer,
)
from character_memory.services.biography import build_full_bio
from character_memory.services.chunker import chunk_text
from character_memory.services.health import collect_health
from character_memory.services.persona import enforce_word_limit

logger = get_logger(__name__)


class CharacterIngestionService:
    """Builds and stores the biography-derived memory of characters."""

    def __init__(
        self,
        characters: CharacterRepository,
        store: MemoryStore,
        embeddings: EmbeddingService,
        summarizer: PersonaSummarizer,
        settings: Settings,
        locks: KeyedLock | None = None,
    ):
        self.characters = characters
        self.store = store
        self.embeddings = embeddings
        self.summarizer = summarizer
        # Shared with the retrieval service so bio replace and insert+prune never interleave
        self.locks = locks or KeyedLock()

        self.chunk_size = settings.chunk_size
        self.chunk_overlap = settings.chunk_overlap
        self.persona_max_words = settings.persona_max_words
        self.embedding_concurrency = settings.embedding_concurrency
        self.ingestion_concurrency = settings.ingestion_concurrency

    async def _load(self, character_id: str) -> Character:
        character = await self.characters.get(character_id)
        if character is None:
            raise CharacterNotFound(character_id)
        return character

    async def _summarize(self, character: Character, full_bio: str, result: IngestionResult) -> str:
        try:
            summary = enforce_word_limit(await self.summarizer.summarize(character, full_bio), self.persona_max_words)
        except ProviderError as e:
            logger.warning("Core persona generation failed", error=e.message)
            result.errors.append(f"Core persona generation failed: {e.message}")
            return character.core_persona_summary or character.fallback_persona

        result.persona_generated = bool(summary)
        return summary or character.core_persona_summary or character.fallback_persona

    async def _embed_individually(self, chunks: list[str]) -> list[list[float] | None]:
        semaphore = asyncio.Semaphore(self.embedding_concurrency)

        async def embed_one(index: int, text: str) -> list[float] | None:
            async with semaphore:
                try:
                    return await self.embeddings.embed_text(text)
                except (ProviderError, EmptyInputError) as e:
                    logger.warning("Dropping chunk whose embedding failed", chunk_index=index, error=e.message)
                    return None

        return list(await asyncio.gather(*(embed_one(i, text) for i, text in enumerate(chunks))))

    async def _embed_chunks(self, chunks: list[str]) -> list[list[float] | None]:
        """One vector per chunk in input order; ``None`` marks a chunk to drop."""
        try:
            vectors: list[list[float] | None] = list(await self.embeddings.embed_batch(chunks))
        except ProviderError as e:
            logger.warning(
                "Batch embedding failed, embedding chunks individually",
                error=e.message,
                chunk_count=len(chunks),
            )
            vectors = await self._embed_individually(chunks)

        if len(vectors) != len(chunks):
            logger.warning("Embedding batch returned the wrong number of vectors", expected=len(chunks), actual=len(vectors))
            vectors = await self._embed_individually(chunks)

        dimensions = self.embeddings.get_model_dimensions()
        checked: list[list[float] | None] = []
        for index, vector in enumerate(vectors):
            if vector is not None and len(vector) != dimensions:
                logger.warning(
                    "Dropping chunk with wrong embedding dimension",
                    chunk_index=index,
                    expected=dimensions,
                    actual=len(vector),
                )
                vector = None
            checked.append(vector)
        return checked

    @logfire.instrument("ingest character {character_id}")
    @with_error_handling(error_level=ErrorLevel.ERROR, reraise=True)
    async def ingest(self, character_id: str) -> IngestionResult:
        """Rebuild the biography, persona and ``bio_chunk`` memories of one character.

        Chunks whose embedding fails are dropped and reported in the result;
        the rest are still written. Writing ``full_bio`` and the persona back
        to the character is best-effort: it happens after the chunk replace
        has committed, and a failure there is only recorded in ``errors``.

        Raises:
            CharacterNotFound: If the id does not resolve to a character
            StoreError: If the memory store cannot complete the replace
        """
        with bound_log_context(character_id=character_id, operation="ingest"):
            character = await self._load(character_id)
            result = IngestionResult(character_id=character_id)

            full_bio = build_full_bio(character)
            persona = await self._summarize(character, full_bio, result)

            chunks = [chunk for chunk in chunk_text(full_bio, self.chunk_size, self.chunk_overlap) if chunk.strip()]
            vectors = await self._embed_chunks(chunks) if chunks else []

            memories: list[MemoryChunk] = []
            for index, (content, vector) in enumerate(zip(chunks, vectors, strict=True)):
                if vector is None:
                    result.embeddings_failed += 1
                    result.errors.append(f"Failed to generate embedding for chunk {index}")
                    continue
                memories.append(
                    MemoryChunk(
                        character_id=character_id,
                        content=content,
                        memory_type=MemoryType.BIO_CHUNK,
                        embedding=vector,
                    )
                )

            async with self.locks.hold(character_id):
                await self.store.replace_by_owner_and_type(character_id, MemoryType.BIO_CHUNK, memories)
                # The replace has committed; a failed field write leaves the previous persona in place
                try:
                    await self.characters.update_derived(character_id, full_bio, persona)
                except StoreError as e:
                    logger.warning("Derived character fields not written", error=e.message)
                    result.errors.append(f"Failed to write full bio and persona summary: {e.message}")

            result.chunks_created = len(memories)
            logger.info(
                "Character ingested",
                chunks_created=result.chunks_created,
                embeddings_failed=result.embeddings_failed,
                persona_generated=result.persona_generated,
                bio_length=len(full_bio),
            )
            return result

    async def ingest_all_characters(self) -> list[IngestionOutcome]:
        """Ingest every known character; one failure never aborts the batch."""
        character_ids = await self.characters.list_ids()
        semaphore = asyncio.Semaphore(self.ingestion_concurrency)

        async def run(character_id: str) -> IngestionOutcome:
            async with semaphore:
                try:
                    return IngestionOutcome(character_id=character_id, result=await self.ingest(character_id))
                except ApplicationError as e:
                    return IngestionOutcome(character_id=character_id, error=e.message)
                except Exception as e:
                    logger.error("Unexpected ingestion failure", character_id=character_id, exc_info=True)
                    return IngestionOutcome(character_id=character_id, error=str(e))

        outcomes = list(await asyncio.gather(*(run(character_id) for character_id in character_ids)))
        succeeded = sum(1 for outcome in outcomes if outcome.success)
        logger.info(
            f"Batch ingestion completed: {succeeded} succeeded, {len(outcomes) - succeeded} failed",
            total=len(outcomes),
        )
        return outcomes

    async def get_ingestion_status(self, character_id: str) -> IngestionStatus:
        character = await self._load(character_id)
        chunk_count = await self.store.count_by_owner(character_id, MemoryType.BIO_CHUNK)
        return IngestionStatus(
            character_id=character_id,
            has_full_bio=bool(character.full_bio),
            has_core_persona=bool(character.core_persona_summary),
            memory_chunk_count=chunk_count,
            last_ingested=character.updated_at if character.full_bio else None,
        )

    async def health_check(self) -> HealthStatus:
        return await collect_health(
            self.embeddings,
            {"memory_store": self.store.ping, "character_repository": self.characters.ping},
        )
