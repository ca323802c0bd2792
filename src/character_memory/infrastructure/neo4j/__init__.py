from .character_repository import Neo4jCharacterRepository
from .driver import Neo4jExecutor, create_neo4j_driver, ensure_schema
from .memory_store import Neo4jMemoryStore

__all__ = [
    "Neo4jCharacterRepository",
    "Neo4jExecutor",
    "Neo4jMemoryStore",
    "create_neo4j_driver",
    "ensure_schema",
]
