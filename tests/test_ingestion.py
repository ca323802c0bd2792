"""
Tests for services/ingestion_service.py.

Covers:
* chunk count, embedding and storage of the biography
* replace semantics across re-ingestion
* dropped chunks when single embeddings fail
* persona generation, fallback and word cap
* batch ingestion isolating per-character failures
* ingestion status
"""

import pytest

from character_memory.core.errors import CharacterNotFound, ProviderError, StoreError
from character_memory.domain.models import MemoryType
from character_memory.infrastructure.memory import InMemoryCharacterRepository
from character_memory.services import CharacterIngestionService, chunk_text
from character_memory.services.biography import build_full_bio
from character_memory.services.persona import count_words
from factories import make_character, make_memory


def character_with_bio_length(length: int, character_id: str = "mira"):
    """A character whose full biography is exactly ``length`` characters."""
    base = dict(
        archetype=None,
        chatbot_role=None,
        tone=[],
        vocabulary=None,
        greeting=None,
        primary_traits=[],
        approach=None,
        primary_motivation=None,
        forbidden_topics=[],
    )
    overhead = len(build_full_bio(make_character(character_id, description="a", **base))) - 1
    return make_character(character_id, description="a" * (length - overhead), **base)


def bio_chunks(character) -> list[str]:
    return [c for c in chunk_text(build_full_bio(character), 800, 100) if c.strip()]


class StaticSummarizer:
    def __init__(self, text: str = "", error: Exception | None = None):
        self.text = text
        self.error = error

    async def summarize(self, character, full_bio):
        if self.error:
            raise self.error
        return self.text


class GhostRepository(InMemoryCharacterRepository):
    """Lists an id that cannot be loaded."""

    async def list_ids(self) -> list[str]:
        return [*await super().list_ids(), "ghost"]


class ReadOnlyRepository(InMemoryCharacterRepository):
    """Serves characters but cannot persist derived fields."""

    async def update_derived(self, character_id: str, full_bio: str, core_persona_summary: str) -> None:
        raise StoreError("character store is read-only")


class TestIngest:
    async def test_two_thousand_character_bio_makes_three_chunks(self, ingestion, characters, store):
        characters.add(character_with_bio_length(2000))

        result = await ingestion.ingest("mira")

        assert result.success
        assert result.chunks_created == 3
        assert result.embeddings_failed == 0
        assert await store.count_by_owner("mira", MemoryType.BIO_CHUNK) == 3

    async def test_stored_chunks_carry_bio_text_and_vectors(self, ingestion, store, embeddings):
        await ingestion.ingest("mira")

        stored = await store.list_by_owner("mira", [MemoryType.BIO_CHUNK])
        bio = build_full_bio(make_character())
        assert stored
        assert all(chunk.content in bio for chunk in stored)
        assert all(chunk.dimensions == embeddings.get_model_dimensions() for chunk in stored)

    async def test_derived_fields_written_back(self, ingestion, characters):
        result = await ingestion.ingest("mira")

        character = await characters.get("mira")
        assert character.full_bio == build_full_bio(make_character())
        assert character.core_persona_summary.startswith("You are Mira")
        assert result.persona_generated

    async def test_unknown_character(self, ingestion):
        with pytest.raises(CharacterNotFound):
            await ingestion.ingest("nobody")


    async def test_failed_derived_write_is_reported(self, store, embeddings, summarizer, settings):
        characters = ReadOnlyRepository([make_character()])
        service = CharacterIngestionService(characters, store, embeddings, summarizer, settings)

        result = await service.ingest("mira")

        assert result.success
        assert any("persona summary" in error for error in result.errors)
        assert await store.count_by_owner("mira", MemoryType.BIO_CHUNK) == result.chunks_created
        character = await characters.get("mira")
        assert character.full_bio is None
        assert character.core_persona_summary is None


class TestReplace:
    async def test_reingestion_replaces_bio_chunks(self, ingestion, characters, store):
        characters.add(character_with_bio_length(2000))
        await ingestion.ingest("mira")
        first_ids = {c.id for c in await store.list_by_owner("mira", [MemoryType.BIO_CHUNK])}

        result = await ingestion.ingest("mira")

        latest = await store.list_by_owner("mira", [MemoryType.BIO_CHUNK])
        assert len(latest) == result.chunks_created == 3
        assert not first_ids & {c.id for c in latest}

    async def test_other_memory_types_survive(self, ingestion, store):
        conversation = make_memory(content="We spoke of tides.")
        await store.upsert_many([conversation])

        await ingestion.ingest("mira")
        await ingestion.ingest("mira")

        assert await store.count_by_owner("mira", MemoryType.CONVERSATION) == 1

    async def test_failed_replace_keeps_previous_set(self, ingestion, store):
        await ingestion.ingest("mira")
        before = {c.id for c in await store.list_by_owner("mira")}

        store.fail_writes = True
        with pytest.raises(StoreError):
            await ingestion.ingest("mira")

        assert {c.id for c in await store.list_by_owner("mira")} == before


class TestEmbeddingFailures:
    async def test_failed_chunk_is_dropped(self, ingestion, characters, embeddings, store):
        character = character_with_bio_length(2000)
        characters.add(character)
        chunks = bio_chunks(character)
        embeddings.fail_texts.add(chunks[1])

        result = await ingestion.ingest("mira")

        assert result.success
        assert result.chunks_created == 2
        assert result.embeddings_failed == 1
        assert any("chunk 1" in error for error in result.errors)
        stored = {c.content for c in await store.list_by_owner("mira")}
        assert stored == {chunks[0], chunks[2]}

    async def test_batch_failure_falls_back_to_single_requests(self, ingestion, embeddings):
        embeddings.fail_batch = True
        result = await ingestion.ingest("mira")
        assert result.success
        assert result.embeddings_failed == 0
        assert embeddings.batch_calls == 1

    async def test_wrong_dimension_chunk_is_dropped(self, ingestion, characters, embeddings):
        character = character_with_bio_length(2000)
        characters.add(character)
        embeddings.wrong_dimension_texts.add(bio_chunks(character)[0])

        result = await ingestion.ingest("mira")

        assert result.chunks_created == 2
        assert result.embeddings_failed == 1

    async def test_all_chunks_failing_is_not_success(self, ingestion, embeddings, store):
        embeddings.fail_all = True
        result = await ingestion.ingest("mira")
        assert not result.success
        assert await store.count_by_owner("mira") == 0


class TestPersona:
    async def test_persona_capped(self, characters, store, embeddings, settings):
        service = CharacterIngestionService(characters, store, embeddings, StaticSummarizer("word " * 500), settings)
        await service.ingest("mira")
        character = await characters.get("mira")
        assert count_words(character.core_persona_summary) == settings.persona_max_words

    async def test_provider_failure_keeps_ingesting(self, characters, store, embeddings, settings):
        summarizer = StaticSummarizer(error=ProviderError("model unavailable"))
        service = CharacterIngestionService(characters, store, embeddings, summarizer, settings)

        result = await service.ingest("mira")

        assert result.success
        assert not result.persona_generated
        assert any("persona" in error for error in result.errors)
        character = await characters.get("mira")
        assert character.core_persona_summary == "You are Mira. Stay in character."


class TestIngestAll:
    async def test_one_failure_does_not_abort_batch(self, store, embeddings, summarizer, settings):
        characters = GhostRepository([make_character("mira"), make_character("tomas", name="Tomas")])
        service = CharacterIngestionService(characters, store, embeddings, summarizer, settings)

        outcomes = await service.ingest_all_characters()

        by_id = {outcome.character_id: outcome for outcome in outcomes}
        assert set(by_id) == {"mira", "tomas", "ghost"}
        assert by_id["mira"].success and by_id["tomas"].success
        assert not by_id["ghost"].success
        assert "ghost" in by_id["ghost"].error
        assert await store.count_by_owner("tomas", MemoryType.BIO_CHUNK) > 0

    async def test_characters_do_not_share_memories(self, store, embeddings, summarizer, settings):
        characters = InMemoryCharacterRepository([make_character("mira"), make_character("tomas", name="Tomas")])
        service = CharacterIngestionService(characters, store, embeddings, summarizer, settings)

        await service.ingest_all_characters()

        assert all(c.character_id == "tomas" for c in await store.list_by_owner("tomas"))
        assert all("Tomas" not in c.content for c in await store.list_by_owner("mira"))


class TestStatus:
    async def test_before_and_after_ingestion(self, ingestion):
        before = await ingestion.get_ingestion_status("mira")
        assert not before.ingested
        assert before.last_ingested is None

        result = await ingestion.ingest("mira")

        after = await ingestion.get_ingestion_status("mira")
        assert after.ingested
        assert after.has_core_persona
        assert after.memory_chunk_count == result.chunks_created
        assert after.last_ingested is not None

    async def test_health(self, ingestion, store):
        assert (await ingestion.health_check()).healthy
        store.fail_reads = True
        status = await ingestion.health_check()
        assert not status.healthy
        assert status.components["memory_store"] is False
