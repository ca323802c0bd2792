"""
Tests for the Neo4j backend against a scripted driver.

Covers:
* rescaling of ``vector.similarity.cosine`` scores back to raw cosine
* owner-scoped query parameters
* delete-then-insert inside one write transaction
* retries on connection loss and mapping of driver errors to ``StoreError``
* the character repository's reads and derived-field write
"""

import pytest
from neo4j.exceptions import DriverError, ServiceUnavailable

from character_memory.core.errors import CharacterNotFound, StoreError
from character_memory.domain.models import MemoryType
from character_memory.infrastructure.neo4j import Neo4jCharacterRepository, Neo4jExecutor, Neo4jMemoryStore
from character_memory.infrastructure.neo4j.queries import memory_row
from factories import QUERY_VECTOR, make_character, make_memory


class ScriptedResult:
    def __init__(self, records: list[dict]):
        self.records = records

    async def single(self, strict: bool = True):
        return self.records[0] if self.records else None

    async def consume(self):
        return None

    def __aiter__(self):
        return self._iterate()

    async def _iterate(self):
        for record in self.records:
            yield record


class ScriptedTransaction:
    """Stands in for ``AsyncManagedTransaction``; each ``run`` replays the next record list."""

    def __init__(self, results: list[list[dict]]):
        self.results = list(results)
        self.runs: list[tuple[str, dict]] = []

    async def run(self, query, params=None):
        self.runs.append((query, dict(params or {})))
        return ScriptedResult(self.results.pop(0) if self.results else [])


class ScriptedSession:
    def __init__(self, driver: "ScriptedDriver"):
        self.driver = driver

    async def __aenter__(self):
        return self

    async def __aexit__(self, *exc_info):
        return None

    async def execute_read(self, work, *args):
        return await self.driver.execute("read", work, *args)

    async def execute_write(self, work, *args):
        return await self.driver.execute("write", work, *args)


class ScriptedDriver:
    """Stands in for ``neo4j.AsyncDriver``; raises scripted failures before running any work."""

    def __init__(self, results: list[list[dict]] | None = None, failures: list[Exception] | None = None):
        self.tx = ScriptedTransaction(results or [])
        self.failures = list(failures or [])
        self.modes: list[str] = []

    def session(self, database=None):
        return ScriptedSession(self)

    async def execute(self, mode, work, *args):
        self.modes.append(mode)
        if self.failures:
            raise self.failures.pop(0)
        return await work(self.tx, *args)


def executor(driver: ScriptedDriver) -> Neo4jExecutor:
    return Neo4jExecutor(driver, timeout=1.0, max_retries=3, initial_delay=0.0, max_delay=0.0)


def scored(score: float | None, **fields) -> dict:
    return {"m": memory_row(make_memory(**fields)), "score": score}


class TestSimilaritySearch:
    async def test_normalized_scores_map_to_raw_cosine(self):
        driver = ScriptedDriver(results=[[scored(0.85), scored(0.5), scored(0.0)]])
        store = Neo4jMemoryStore(executor(driver))

        results = await store.query_top_k("mira", QUERY_VECTOR, 3)

        assert [r.similarity for r in results] == pytest.approx([0.7, 0.0, -1.0])

    async def test_rows_without_score_are_skipped(self):
        driver = ScriptedDriver(results=[[scored(None, content="no vector"), scored(1.0, content="match")]])
        store = Neo4jMemoryStore(executor(driver))

        results = await store.query_top_k("mira", QUERY_VECTOR, 2)

        assert [r.chunk.content for r in results] == ["match"]
        assert results[0].similarity == pytest.approx(1.0)

    async def test_query_scoped_to_owner(self):
        driver = ScriptedDriver(results=[[]])
        store = Neo4jMemoryStore(executor(driver))

        await store.query_top_k("mira", QUERY_VECTOR, 6, [MemoryType.CONVERSATION])

        query, params = driver.tx.runs[0]
        assert "{character_id: $character_id}" in query
        assert params == {
            "character_id": "mira",
            "embedding": QUERY_VECTOR,
            "k": 6,
            "memory_types": ["conversation"],
        }
        assert driver.modes == ["read"]

    async def test_non_positive_k_skips_query(self):
        driver = ScriptedDriver()
        store = Neo4jMemoryStore(executor(driver))

        assert await store.query_top_k("mira", QUERY_VECTOR, 0) == []
        assert driver.modes == []


class TestWrites:
    async def test_replace_deletes_before_insert_in_one_transaction(self):
        driver = ScriptedDriver(results=[[{"deleted": 2}], []])
        store = Neo4jMemoryStore(executor(driver))
        chunks = [make_memory(memory_type=MemoryType.BIO_CHUNK, content=f"part {i}") for i in range(2)]

        await store.replace_by_owner_and_type("mira", MemoryType.BIO_CHUNK, chunks)

        assert driver.modes == ["write"]
        (delete_query, delete_params), (insert_query, insert_params) = driver.tx.runs
        assert "DETACH DELETE" in delete_query
        assert delete_params == {"character_id": "mira", "memory_type": "bio_chunk"}
        assert "UNWIND $rows" in insert_query
        assert [row["id"] for row in insert_params["rows"]] == [str(c.id) for c in chunks]

    async def test_empty_replacement_only_deletes(self):
        driver = ScriptedDriver(results=[[{"deleted": 3}]])
        store = Neo4jMemoryStore(executor(driver))

        await store.replace_by_owner_and_type("mira", MemoryType.BIO_CHUNK, [])

        assert len(driver.tx.runs) == 1
        assert "DETACH DELETE" in driver.tx.runs[0][0]

    async def test_foreign_chunks_rejected_before_writing(self):
        driver = ScriptedDriver()
        store = Neo4jMemoryStore(executor(driver))

        with pytest.raises(ValueError):
            await store.replace_by_owner_and_type("mira", MemoryType.BIO_CHUNK, [make_memory("tomas")])
        assert driver.modes == []

    async def test_delete_many_scoped_to_owner(self):
        driver = ScriptedDriver(results=[[{"deleted": 1}]])
        store = Neo4jMemoryStore(executor(driver))
        doomed = make_memory()

        assert await store.delete_many("mira", [doomed.id]) == 1

        query, params = driver.tx.runs[0]
        assert "{character_id: $character_id}" in query
        assert params == {"character_id": "mira", "ids": [str(doomed.id)]}


class TestExecutorErrors:
    async def test_connection_loss_retried_then_store_error(self):
        driver = ScriptedDriver(failures=[ServiceUnavailable("connection refused") for _ in range(3)])
        store = Neo4jMemoryStore(executor(driver))

        with pytest.raises(StoreError):
            await store.count_by_owner("mira")
        assert len(driver.modes) == 3

    async def test_connection_loss_recovers_on_retry(self):
        driver = ScriptedDriver(results=[[{"total": 4}]], failures=[ServiceUnavailable("connection refused")])
        store = Neo4jMemoryStore(executor(driver))

        assert await store.count_by_owner("mira") == 4
        assert len(driver.modes) == 2

    async def test_driver_error_not_retried(self):
        driver = ScriptedDriver(failures=[DriverError("malformed query")])
        store = Neo4jMemoryStore(executor(driver))

        with pytest.raises(StoreError):
            await store.upsert_many([make_memory()])
        assert driver.modes == ["write"]

    async def test_ping_false_when_unreachable(self):
        driver = ScriptedDriver(failures=[ServiceUnavailable("connection refused") for _ in range(3)])
        store = Neo4jMemoryStore(executor(driver))

        assert await store.ping() is False


class TestCharacterRepository:
    async def test_get_and_missing(self):
        character = make_character()
        driver = ScriptedDriver(results=[[{"c": character.model_dump()}], []])
        repository = Neo4jCharacterRepository(executor(driver))

        assert await repository.get("mira") == character
        assert await repository.get("nobody") is None

    async def test_update_derived_on_missing_character(self):
        driver = ScriptedDriver(results=[[]])
        repository = Neo4jCharacterRepository(executor(driver))

        with pytest.raises(CharacterNotFound):
            await repository.update_derived("nobody", "bio", "You are nobody.")
        assert driver.modes == ["write"]
