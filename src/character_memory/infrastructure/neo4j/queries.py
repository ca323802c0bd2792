"""Centralized Cypher for the character memory store.

Every memory query is anchored on ``character_id`` so that one character's
memories never leak into another's results.
"""

from collections.abc import Sequence
from typing import Any, LiteralString

from character_memory.domain.models import Character, MemoryChunk, MemoryType


def to_native(value: Any) -> Any:
    """Convert neo4j temporal values to their Python counterparts."""
    if hasattr(value, "to_native"):
        return value.to_native()
    return value


def node_properties(node: Any) -> dict[str, Any]:
    return {key: to_native(value) for key, value in dict(node).items()}


def memory_row(chunk: MemoryChunk) -> dict[str, Any]:
    """Flatten a chunk into node properties."""
    row = chunk.model_dump(mode="python")
    row["id"] = str(chunk.id)
    row["memory_type"] = chunk.memory_type.value
    row["importance"] = chunk.importance.value
    return row


def memory_from_node(node: Any) -> MemoryChunk:
    return MemoryChunk.model_validate(node_properties(node))


def character_from_node(node: Any) -> Character:
    return Character.model_validate(node_properties(node))


def _type_values(memory_types: Sequence[MemoryType] | None) -> list[str] | None:
    if memory_types is None:
        return None
    return [memory_type.value for memory_type in memory_types]


class MemoryQueries:
    """All memory-related queries in one place."""

    @staticmethod
    def upsert_many(chunks: Sequence[MemoryChunk]) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
            UNWIND $rows AS row
            MERGE (m:CharacterMemory {id: row.id})
            SET m = row
        """
        return query, {"rows": [memory_row(chunk) for chunk in chunks]}

    @staticmethod
    def delete_by_owner_and_type(character_id: str, memory_type: MemoryType) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
            MATCH (m:CharacterMemory {character_id: $character_id, memory_type: $memory_type})
            DETACH DELETE m
            RETURN count(*) AS deleted
        """
        return query, {"character_id": character_id, "memory_type": memory_type.value}

    @staticmethod
    def similarity_search(
        character_id: str,
        embedding: Sequence[float],
        k: int,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> tuple[LiteralString, dict[str, Any]]:
        """Exact cosine top-k over one character's memories.

        ``vector.similarity.cosine`` returns the similarity rescaled to [0, 1];
        callers map it back to the raw [-1, 1] range.
        """
        query: LiteralString = """
            MATCH (m:CharacterMemory {character_id: $character_id})
            WHERE $memory_types IS NULL OR m.memory_type IN $memory_types
            WITH m, vector.similarity.cosine(m.embedding, $embedding) AS score
            RETURN m, score
            ORDER BY score DESC, m.id ASC
            LIMIT $k
        """
        return query, {
            "character_id": character_id,
            "embedding": list(embedding),
            "k": k,
            "memory_types": _type_values(memory_types),
        }

    @staticmethod
    def list_by_owner(
        character_id: str,
        memory_types: Sequence[MemoryType] | None = None,
    ) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
            MATCH (m:CharacterMemory {character_id: $character_id})
            WHERE $memory_types IS NULL OR m.memory_type IN $memory_types
            RETURN m
            ORDER BY m.created_at ASC, m.id ASC
        """
        return query, {"character_id": character_id, "memory_types": _type_values(memory_types)}

    @staticmethod
    def delete_many(character_id: str, ids: Sequence[str]) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
            MATCH (m:CharacterMemory {character_id: $character_id})
            WHERE m.id IN $ids
            DETACH DELETE m
            RETURN count(*) AS deleted
        """
        return query, {"character_id": character_id, "ids": list(ids)}

    @staticmethod
    def count_by_owner(character_id: str, memory_type: MemoryType | None = None) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = """
            MATCH (m:CharacterMemory {character_id: $character_id})
            WHERE $memory_type IS NULL OR m.memory_type = $memory_type
            RETURN count(m) AS total
        """
        return query, {
            "character_id": character_id,
            "memory_type": memory_type.value if memory_type else None,
        }


class CharacterQueries:
    """Queries against the externally managed character records."""

    @staticmethod
    def get(character_id: str) -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = "MATCH (c:Character {id: $character_id}) RETURN c"
        return query, {"character_id": character_id}

    @staticmethod
    def list_ids() -> tuple[LiteralString, dict[str, Any]]:
        query: LiteralString = "MATCH (c:Character) RETURN c.id AS id ORDER BY id"
        return query, {}

    @staticmethod
    def update_derived(character_id: str, full_bio: str, core_persona_summary: str) -> tuple[LiteralString, dict[str, Any]]:  # noqa: E501
        query: LiteralString = """
            MATCH (c:Character {id: $character_id})
            SET c.full_bio = $full_bio,
                c.core_persona_summary = $core_persona_summary,
                c.updated_at = datetime()
            RETURN c.id AS id
        """
        return query, {
            "character_id": character_id,
            "full_bio": full_bio,
            "core_persona_summary": core_persona_summary,
        }
