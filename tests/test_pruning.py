"""
Tests for memory pruning in services/retrieval_service.py.

Covers:
* the per-character cap after repeated write-back
* biography chunks never evicted
* eviction order by retention value
* the stale low-value sweep
* serialization of concurrent write-backs
* the written memory surviving its own prune, and cancellation mid-prune
"""

import asyncio

import pytest

from character_memory.domain.models import Importance, MemoryMetadata, MemoryType
from character_memory.services import RetrievalService
from character_memory.services.scoring import retention_score
from factories import FailingMemoryStore, make_memory


class GatedMemoryStore(FailingMemoryStore):
    """Blocks listing until released, so a prune can be caught half-way."""

    def __init__(self) -> None:
        super().__init__()
        self.listing = asyncio.Event()
        self.release = asyncio.Event()

    async def list_by_owner(self, *args, **kwargs):
        self.listing.set()
        await self.release.wait()
        return await super().list_by_owner(*args, **kwargs)


@pytest.fixture
def capped(characters, store, embeddings, settings, locks) -> RetrievalService:
    return RetrievalService(
        characters,
        store,
        embeddings,
        settings.model_copy(update={"max_memories_per_character": 5}),
        locks,
    )


class TestCap:
    async def test_write_back_never_exceeds_cap(self, capped, store):
        for turn in range(12):
            await capped.record_conversation_memory("mira", f"Turn {turn}")
            assert await store.count_by_owner("mira") <= 5
        assert await store.count_by_owner("mira") == 5

    async def test_concurrent_write_backs_respect_cap(self, capped, store):
        await asyncio.gather(*(capped.record_conversation_memory("mira", f"Turn {i}") for i in range(20)))
        assert await store.count_by_owner("mira") == 5

    async def test_bio_chunks_never_evicted(self, capped, store):
        bio = [make_memory(memory_type=MemoryType.BIO_CHUNK, age_days=365, emotional_weight=0.0) for _ in range(3)]
        await store.upsert_many(bio)

        for turn in range(6):
            await capped.record_conversation_memory("mira", f"Turn {turn}")

        remaining = await store.list_by_owner("mira")
        assert len(remaining) == 5
        assert {c.id for c in bio} <= {c.id for c in remaining}

    async def test_bio_alone_over_cap_is_kept(self, capped, store):
        bio = [make_memory(memory_type=MemoryType.BIO_CHUNK) for _ in range(7)]
        await store.upsert_many([*bio, make_memory()])

        deleted = await capped.prune_memories("mira")

        assert deleted == 1
        assert await store.count_by_owner("mira", MemoryType.BIO_CHUNK) == 7

    async def test_other_characters_untouched(self, capped, store):
        await store.upsert_many([make_memory("tomas") for _ in range(8)])
        await capped.record_conversation_memory("mira", "Hello.")
        assert await store.count_by_owner("tomas") == 8


class TestEvictionOrder:
    async def test_lowest_retention_evicted_first(self, retrieval, store, settings):
        keep = make_memory(content="keep", emotional_weight=0.9, importance=Importance.HIGH)
        middle = make_memory(content="middle", emotional_weight=0.5, importance=Importance.MEDIUM, age_days=10)
        drop = make_memory(content="drop", emotional_weight=0.1, importance=Importance.LOW, age_days=100)
        await store.upsert_many([keep, middle, drop])

        assert retention_score(drop, settings.scoring) < retention_score(middle, settings.scoring)
        assert await retrieval.prune_memories("mira", max_memories=2) == 1

        assert {c.content for c in await store.list_by_owner("mira")} == {"keep", "middle"}

    async def test_ties_evict_older_first(self, retrieval, store):
        older = make_memory(content="older", age_days=400)
        newer = make_memory(content="newer", age_days=399)
        await store.upsert_many([older, newer])

        await retrieval.prune_memories("mira", max_memories=1)

        assert [c.content for c in await store.list_by_owner("mira")] == ["newer"]

    async def test_under_cap_is_noop(self, retrieval, store):
        await store.upsert_many([make_memory() for _ in range(3)])
        assert await retrieval.prune_memories("mira") == 0
        assert await store.count_by_owner("mira") == 3


class TestStaleSweep:
    async def test_old_low_value_memories_removed(self, retrieval, store):
        stale = make_memory(content="stale", age_days=40, importance=Importance.LOW, emotional_weight=0.1)
        important = make_memory(content="important", age_days=40, importance=Importance.HIGH, emotional_weight=0.1)
        emotional = make_memory(content="emotional", age_days=40, importance=Importance.LOW, emotional_weight=0.8)
        recent = make_memory(content="recent", age_days=5, importance=Importance.LOW, emotional_weight=0.1)
        bio = make_memory(content="bio", memory_type=MemoryType.BIO_CHUNK, age_days=40, emotional_weight=0.0)
        await store.upsert_many([stale, important, emotional, recent, bio])

        deleted = await retrieval.prune_memories("mira", older_than_days=30)

        assert deleted == 1
        assert {c.content for c in await store.list_by_owner("mira")} == {
            "important",
            "emotional",
            "recent",
            "bio",
        }


class TestWriteBack:
    async def test_new_low_value_memory_survives_full_cap(self, capped, store):
        valued = [
            make_memory(content=f"valued {i}", age_days=200, importance=Importance.HIGH, emotional_weight=0.6)
            for i in range(5)
        ]
        await store.upsert_many(valued)

        chunk = await capped.record_conversation_memory(
            "mira",
            "Nice weather today.",
            MemoryMetadata(emotional_weight=0.0, importance=Importance.LOW),
        )

        assert chunk is not None
        remaining = await store.list_by_owner("mira")
        assert len(remaining) == 5
        assert chunk.id in {m.id for m in remaining}
        assert len({m.id for m in valued} - {m.id for m in remaining}) == 1

    async def test_cap_filled_by_bio_rejects_write_back(self, capped, store):
        bio = [make_memory(memory_type=MemoryType.BIO_CHUNK) for _ in range(5)]
        await store.upsert_many(bio)

        chunk = await capped.record_conversation_memory("mira", "Hello again.")

        assert chunk is None
        remaining = await store.list_by_owner("mira")
        assert {m.id for m in remaining} == {m.id for m in bio}

    async def test_cancelled_write_back_still_prunes(self, characters, embeddings, settings, locks):
        gated = GatedMemoryStore()
        await gated.upsert_many([make_memory(content=f"old {i}", age_days=10) for i in range(5)])
        service = RetrievalService(
            characters,
            gated,
            embeddings,
            settings.model_copy(update={"max_memories_per_character": 5}),
            locks,
        )

        task = asyncio.create_task(service.record_conversation_memory("mira", "Goodbye."))
        await gated.listing.wait()
        task.cancel()
        await asyncio.sleep(0)
        gated.release.set()

        with pytest.raises(asyncio.CancelledError):
            await task
        assert await gated.count_by_owner("mira") == 5
        assert "Goodbye." in {m.content for m in await gated.list_by_owner("mira")}
