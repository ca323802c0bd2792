"""Neo4j-backed memory store."""

from collections.abc import Sequence
from uuid import UUID

from neo4j import AsyncManagedTransaction

from character_memory.core.logging import get_logger
from character_memory.domain.models import MemoryChunk, MemoryType, ScoredMemory
from character_memory.infrastructure.neo4j.driver import Neo4jExecutor, fetch_all, fetch_single
from character_memory.infrastructure.neo4j.queries import MemoryQueries, memory_from_node

logger = get_logger(__name__)


async def _replace(
    tx: AsyncManagedTransaction,
    character_id: str,
    memory_type: MemoryType,
    chunks: Sequence[MemoryChunk],
) -> int:
    """Delete then insert inside one transaction; readers never see a mix."""
    query, params = MemoryQueries.delete_by_owner_and_type(character_id, memory_type)
    result = await tx.run(query, params)
    record = await result.single(strict=False)
    if chunks:
        query, params = MemoryQueries.upsert_many(chunks)
        result = await tx.run(query, params)
        await result.consume()
    return record["deleted"] if record else 0


def _raw_cosine(normalized: float) -> float:
    return max(-1.0, min(1.0, 2.0 * normalized - 1.0))


class Neo4jMemoryStore:
    """Memories stored as ``(:CharacterMemory)`` nodes keyed by ``character_id``."""

    def __init__(self, executor: Neo4jExecutor) -> None:
        self.executor = executor

    async def upsert_many(self, chunks: Sequence[MemoryChunk]) -> None:
        if not chunks:
            return
        query, params = MemoryQueries.upsert_many(chunks)
        await self.executor.write(fetch_all, query, params)

    async def delete_by_owner_and_type(self, character_id: str, memory_type: MemoryType) -> int:
        query, params = MemoryQueries.delete_by_owner_and_type(character_id, memory_type)
        record = await self.executor.write(fetch_single, query, params)
        return record["deleted"] if record else 0

    async def replace_by_owner_and_type(
        self,
        character_id: str,
        memory_type: MemoryType,
        chunks: Sequence[MemoryChunk],
    ) -> None:
        foreign = [c for c in chunks if c.character_id != character_id or c.memory_type != memory_type]
        if foreign:
            raise ValueError("replacement chunks must all belong to the replaced character and type")

        deleted = await self.executor.write(_replace, character_id, memory_type, chunks)
        logger.debug(
            "Replaced memory set",
            character_id=character_id,
            memory_type=memory_type.value,
            deleted=deleted,
            inserted=len(chunks),
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
        query, params = MemoryQueries.similarity_search(character_id, query_vector, k, memory_types)
        records = await self.executor.read(fetch_all, query, params)
        return [
            ScoredMemory(chunk=memory_from_node(record["m"]), similarity=_raw_cosine(record["score"]))
            for record in records
            if record["score"] is not None
        ]

    async def list_by_owner(
        self,
        character_id: str,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> list[MemoryChunk]:
        query, params = MemoryQueries.list_by_owner(character_id, memory_types)
        records = await self.executor.read(fetch_all, query, params)
        return [memory_from_node(record["m"]) for record in records]

    async def delete_many(self, character_id: str, ids: Sequence[UUID]) -> int:
        if not ids:
            return 0
        query, params = MemoryQueries.delete_many(character_id, [str(memory_id) for memory_id in ids])
        record = await self.executor.write(fetch_single, query, params)
        return record["deleted"] if record else 0

    async def count_by_owner(self, character_id: str, memory_type: MemoryType | None = None) -> int:
        query, params = MemoryQueries.count_by_owner(character_id, memory_type)
        record = await self.executor.read(fetch_single, query, params)
        return record["total"] if record else 0

    async def ping(self) -> bool:
        return await self.executor.ping()
