"""Per-turn memory retrieval, conversation write-back and pruning."""

import asyncio
import time
from collections.abc import Collection, Coroutine
from datetime import timedelta
from typing import Any, TypeVar
from uuid import UUID

import logfire

from character_memory.core.config import ScoringConfig, Settings
from character_memory.core.errors import (
    CharacterNotFound,
    DimensionMismatchError,
    EmptyInputError,
    ProviderError,
    StoreError,
)
from character_memory.core.locks import KeyedLock
from character_memory.core.logging import bound_log_context, get_logger
from character_memory.domain.models import (
    Character,
    HealthStatus,
    Importance,
    MemoryChunk,
    MemoryMetadata,
    MemoryStats,
    MemoryType,
    RetrievalConfig,
    RetrievalContext,
    RetrievalOverrides,
    RetrievedMemory,
)
from character_memory.domain.models.utils import utc_now
from character_memory.domain.services import CharacterRepository, EmbeddingService, MemoryStore
from character_memory.services.health import collect_health
from character_memory.services.scoring import composite_score, retention_score

logger = get_logger(__name__)

T = TypeVar("T")

# Stale-memory sweep thresholds for prune_memories(older_than_days=...)
STALE_EMOTIONAL_WEIGHT = 0.3


class RetrievalService:
    """Selects the memories that accompany a character's next reply.

    Retrieval never fails a conversation turn because of the embedding
    provider or the store: those failures degrade to a persona-only context.
    """

    def __init__(
        self,
        characters: CharacterRepository,
        store: MemoryStore,
        embeddings: EmbeddingService,
        settings: Settings,
        locks: KeyedLock | None = None,
    ):
        self.characters = characters
        self.store = store
        self.embeddings = embeddings
        self.locks = locks or KeyedLock()

        self.defaults = RetrievalConfig.from_defaults(settings.retrieval)
        self.scoring: ScoringConfig = settings.scoring
        self.max_memories = settings.max_memories_per_character

    async def _load(self, character_id: str) -> Character:
        character = await self.characters.get(character_id)
        if character is None:
            raise CharacterNotFound(character_id)
        return character

    def _config(self, overrides: RetrievalOverrides | None) -> RetrievalConfig:
        return self.defaults.merged(overrides)

    async def _rank(self, character_id: str, query: str, config: RetrievalConfig) -> list[RetrievedMemory]:
        """Embed, over-fetch, drop below the similarity floor, score and cut.

        Raises:
            ProviderError: If the query cannot be embedded
            StoreError: If the store cannot be read
        """
        query_vector = await self.embeddings.embed_text(query, input_type="query")
        candidates = await self.store.query_top_k(
            character_id,
            query_vector,
            config.max_results * config.overfetch_factor,
            config.memory_types,
        )

        now = utc_now()
        eligible = [
            RetrievedMemory(
                id=str(candidate.chunk.id),
                content=candidate.chunk.content,
                memory_type=candidate.chunk.memory_type,
                similarity=candidate.similarity,
                score=composite_score(
                    candidate.similarity,
                    candidate.chunk,
                    self.scoring,
                    weight_emotional=config.weight_emotional,
                    boost_recent=config.boost_recent,
                    now=now,
                ),
                emotional_weight=candidate.chunk.emotional_weight,
                importance=candidate.chunk.importance,
                created_at=candidate.chunk.created_at,
            )
            for candidate in candidates
            # The floor applies to raw similarity; boosts never rescue a candidate
            if candidate.similarity >= config.min_similarity
        ]

        # Score descending, then newer first, then id for full determinism
        eligible.sort(key=lambda m: m.id)
        eligible.sort(key=lambda m: (m.score, m.created_at), reverse=True)
        return eligible[: config.max_results]

    @logfire.instrument("get context for {character_id}")
    async def get_context(
        self,
        character_id: str,
        user_message: str,
        config: RetrievalOverrides | None = None,
    ) -> RetrievalContext:
        """Persona summary plus the memories most relevant to ``user_message``.

        Raises:
            CharacterNotFound: If the id does not resolve to a character
        """
        started = time.perf_counter()
        with bound_log_context(character_id=character_id, operation="get_context"):
            character = await self._load(character_id)
            effective = self._config(config)
            context = RetrievalContext(
                character_id=character_id,
                core_persona=character.core_persona_summary or character.fallback_persona,
                search_query=user_message,
            )

            if not user_message.strip():
                context.retrieval_time_ms = (time.perf_counter() - started) * 1000
                return context

            try:
                context.relevant_memories = await self._rank(character_id, user_message, effective)
                context.total_memories = await self.store.count_by_owner(character_id)
            except (ProviderError, StoreError, EmptyInputError, DimensionMismatchError) as e:
                logger.warning("Retrieval degraded to persona-only context", error=e.message, error_code=e.code.value)
                context.relevant_memories = []
                context.degraded = True

            context.retrieval_time_ms = (time.perf_counter() - started) * 1000
            logger.info(
                "Context retrieved",
                memories=len(context.relevant_memories),
                degraded=context.degraded,
                retrieval_time_ms=round(context.retrieval_time_ms, 2),
            )
            return context

    async def search_memories(
        self,
        character_id: str,
        query: str,
        config: RetrievalOverrides | None = None,
    ) -> list[RetrievedMemory]:
        """The ranked memory list of ``get_context`` without persona assembly."""
        with bound_log_context(character_id=character_id, operation="search_memories"):
            await self._load(character_id)
            if not query.strip():
                return []
            try:
                return await self._rank(character_id, query, self._config(config))
            except (ProviderError, StoreError, DimensionMismatchError) as e:
                logger.warning("Memory search failed", error=e.message)
                return []

    async def record_conversation_memory(
        self,
        character_id: str,
        content: str,
        metadata: MemoryMetadata | None = None,
    ) -> MemoryChunk | None:
        """Store one conversation-derived memory, then enforce the per-character cap.

        The embedding is computed before the lock is taken. Once the insert
        has started it runs to completion together with its prune, even if
        the call is cancelled. Provider and store failures are logged and
        yield ``None``, as does a memory that had to be evicted at once
        because biography chunks alone fill the cap.

        Raises:
            CharacterNotFound: If the id does not resolve to a character
        """
        with bound_log_context(character_id=character_id, operation="record_conversation_memory"):
            await self._load(character_id)
            if not content.strip():
                return None

            metadata = metadata or MemoryMetadata()
            try:
                embedding = await self.embeddings.embed_text(content)
            except ProviderError as e:
                logger.warning("Conversation memory not stored, embedding failed", error=e.message)
                return None

            chunk = MemoryChunk(
                character_id=character_id,
                content=content,
                memory_type=MemoryType.CONVERSATION,
                embedding=embedding,
                **metadata.model_dump(),
            )

            try:
                async with self.locks.hold(character_id):
                    kept = await self._run_to_completion(self._store_and_prune(chunk))
            except (StoreError, DimensionMismatchError) as e:
                logger.warning("Conversation memory write failed", error=e.message)
                return None

            if not kept:
                logger.warning("Conversation memory evicted on write, biography chunks fill the memory cap")
                return None

            logger.debug("Conversation memory stored", memory_id=str(chunk.id))
            return chunk

    def _select_evictions(
        self,
        memories: list[MemoryChunk],
        max_memories: int,
        older_than_days: int | None = None,
        protect: Collection[UUID] = (),
    ) -> list[UUID]:
        """Ids to delete so that ``memories`` fits under ``max_memories``.

        ``bio_chunk`` memories are never selected. Ids in ``protect`` are
        selected only when nothing else is left to evict.
        """
        now = utc_now()
        evictable = [m for m in memories if m.memory_type != MemoryType.BIO_CHUNK]
        doomed: list[UUID] = []

        if older_than_days is not None:
            cutoff = now - timedelta(days=older_than_days)
            stale = [
                m
                for m in evictable
                if m.id not in protect
                and m.created_at < cutoff
                and m.importance == Importance.LOW
                and m.emotional_weight < STALE_EMOTIONAL_WEIGHT
            ]
            doomed.extend(m.id for m in stale)
            stale_ids = {m.id for m in stale}
            evictable = [m for m in evictable if m.id not in stale_ids]

        overflow = len(memories) - len(doomed) - max_memories
        if overflow > 0:
            # Protected last, then lowest retention first; ties evict the older memory, then by id
            ranked = sorted(
                evictable,
                key=lambda m: (m.id in protect, retention_score(m, self.scoring, now), m.created_at, str(m.id)),
            )
            if overflow > len(ranked):
                logger.warning(
                    "Biography chunks alone exceed the memory cap",
                    cap=max_memories,
                    bio_chunks=len(memories) - len(evictable) - len(doomed),
                )
            doomed.extend(m.id for m in ranked[:overflow])

        return doomed

    async def _prune_locked(
        self,
        character_id: str,
        max_memories: int,
        older_than_days: int | None = None,
        protect: Collection[UUID] = (),
    ) -> list[UUID]:
        """Evict memories past the cap; the caller holds the character's lock."""
        memories = await self.store.list_by_owner(character_id)
        doomed = self._select_evictions(memories, max_memories, older_than_days, protect)
        if not doomed:
            return []

        deleted = await self.store.delete_many(character_id, doomed)
        logger.info("Pruned memories", deleted=deleted, remaining=len(memories) - deleted)
        return doomed

    async def _store_and_prune(self, chunk: MemoryChunk) -> bool:
        """Insert ``chunk`` and enforce the cap; ``False`` if the chunk itself was evicted."""
        await self.store.upsert_many([chunk])
        evicted = await self._prune_locked(chunk.character_id, self.max_memories, protect={chunk.id})
        return chunk.id not in evicted

    @staticmethod
    async def _run_to_completion(work: Coroutine[Any, Any, T]) -> T:
        """Await ``work``; if the caller is cancelled, let it finish first.

        Keeps the cap enforced when a client disconnects between the insert
        and the prune. The caller must still hold the character's lock.
        """
        task = asyncio.ensure_future(work)
        try:
            return await asyncio.shield(task)
        except asyncio.CancelledError:
            try:
                await task
            except (StoreError, DimensionMismatchError) as e:
                logger.warning("Write-back failed after cancellation", error=e.message)
            raise

    async def prune_memories(
        self,
        character_id: str,
        max_memories: int | None = None,
        older_than_days: int | None = None,
    ) -> int:
        """Enforce the per-character memory cap; returns the number evicted.

        The cap counts every memory type, but ``bio_chunk`` memories are never
        evicted. ``older_than_days`` additionally removes stale, low-importance,
        low-emotion memories.

        Raises:
            CharacterNotFound: If the id does not resolve to a character
            StoreError: If the store fails
        """
        with bound_log_context(character_id=character_id, operation="prune_memories"):
            await self._load(character_id)
            async with self.locks.hold(character_id):
                doomed = await self._prune_locked(character_id, max_memories or self.max_memories, older_than_days)
                return len(doomed)

    async def get_memory_stats(self, character_id: str) -> MemoryStats:
        await self._load(character_id)
        memories = await self.store.list_by_owner(character_id)
        return MemoryStats.from_chunks(character_id, memories)

    async def health_check(self) -> HealthStatus:
        return await collect_health(
            self.embeddings,
            {"memory_store": self.store.ping, "character_repository": self.characters.ping},
        )

