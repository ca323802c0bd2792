"""Neo4j-backed character repository."""

from character_memory.core.errors import CharacterNotFound
from character_memory.domain.models import Character
from character_memory.infrastructure.neo4j.driver import Neo4jExecutor, fetch_all, fetch_single
from character_memory.infrastructure.neo4j.queries import CharacterQueries, character_from_node


class Neo4jCharacterRepository:
    """Reads ``(:Character)`` nodes and writes back their derived fields."""

    def __init__(self, executor: Neo4jExecutor) -> None:
        self.executor = executor

    async def get(self, character_id: str) -> Character | None:
        query, params = CharacterQueries.get(character_id)
        record = await self.executor.read(fetch_single, query, params)
        if record is None:
            return None
        return character_from_node(record["c"])

    async def list_ids(self) -> list[str]:
        query, params = CharacterQueries.list_ids()
        records = await self.executor.read(fetch_all, query, params)
        return [record["id"] for record in records]

    async def update_derived(self, character_id: str, full_bio: str, core_persona_summary: str) -> None:
        query, params = CharacterQueries.update_derived(character_id, full_bio, core_persona_summary)
        record = await self.executor.write(fetch_single, query, params)
        if record is None:
            raise CharacterNotFound(character_id)

    async def ping(self) -> bool:
        return await self.executor.ping()
