"""
Tests for services/biography.py and services/persona.py.

Covers:
* full biography section order, labels and omission of empty fields
* persona word cap and the rule-based summary
* the Anthropic summarizer and its rule-based fallback
"""

import asyncio
from types import SimpleNamespace

from character_memory.services.biography import build_full_bio
from character_memory.services.persona import (
    AnthropicPersonaSummarizer,
    RuleBasedPersonaSummarizer,
    count_words,
    enforce_word_limit,
)
from factories import make_character


class FakeMessages:
    def __init__(self, text: str = "", delay: float = 0.0):
        self.text = text
        self.delay = delay
        self.requests: list[dict] = []

    async def create(self, **kwargs):
        self.requests.append(kwargs)
        if self.delay:
            await asyncio.sleep(self.delay)
        return SimpleNamespace(content=[SimpleNamespace(type="text", text=self.text)])


def fake_client(text: str = "", delay: float = 0.0) -> SimpleNamespace:
    return SimpleNamespace(messages=FakeMessages(text, delay))


class TestFullBio:
    def test_sections_in_fixed_order(self):
        bio = build_full_bio(make_character(primary_motivation="duty", core_goal="keep the archive"))
        titles = ("IDENTITY:", "APPEARANCE:", "VOICE:", "PERSONALITY:", "GOALS & MOTIVATION:", "BOUNDARIES:")
        positions = [bio.index(title) for title in titles]
        assert positions == sorted(positions)

    def test_labels_and_values(self):
        bio = build_full_bio(make_character())
        assert "Name: Mira" in bio
        assert "Tone: warm, measured" in bio
        assert 'Greeting: "Welcome, seeker."' in bio

    def test_missing_fields_and_sections_omitted(self):
        bio = build_full_bio(make_character(description=None, archetype=None))
        assert "Archetype" not in bio
        assert "APPEARANCE" not in bio

    def test_name_only(self):
        character = make_character(
            archetype=None,
            chatbot_role=None,
            description=None,
            tone=[],
            vocabulary=None,
            greeting=None,
            primary_traits=[],
            approach=None,
            primary_motivation=None,
            forbidden_topics=[],
        )
        assert build_full_bio(character) == "IDENTITY:\nName: Mira"


class TestWordLimit:
    def test_under_limit_is_unchanged(self):
        assert enforce_word_limit("You are Mira.", 10) == "You are Mira."

    def test_truncated_text_is_closed(self):
        clipped = enforce_word_limit("one two three four five", 3)
        assert clipped == "one two three."
        assert count_words(clipped) == 3


class TestRuleBased:
    async def test_second_person_summary(self):
        summary = await RuleBasedPersonaSummarizer().summarize(make_character(), "")
        assert summary.startswith("You are Mira, The Sage")
        assert "curious, patient and wry" in summary

    async def test_respects_max_words(self):
        character = make_character(quirks=["hums " * 200], interaction_policy="Be kind. " * 200)
        summary = await RuleBasedPersonaSummarizer(target_words=20, max_words=30).summarize(character, "")
        assert count_words(summary) <= 30


class TestAnthropic:
    async def test_uses_model_text(self):
        client = fake_client("You are Mira, keeper of the Sunken Archive.")
        summarizer = AnthropicPersonaSummarizer(client, "claude-test", RuleBasedPersonaSummarizer())

        summary = await summarizer.summarize(make_character(), build_full_bio(make_character()))

        assert summary == "You are Mira, keeper of the Sunken Archive."
        request = client.messages.requests[0]
        assert request["model"] == "claude-test"
        assert "Mira" in request["messages"][0]["content"]

    async def test_caps_long_model_text(self):
        client = fake_client("word " * 500)
        summarizer = AnthropicPersonaSummarizer(client, "claude-test", RuleBasedPersonaSummarizer(max_words=300))
        assert count_words(await summarizer.summarize(make_character(), "")) == 300

    async def test_empty_response_falls_back(self):
        fallback = RuleBasedPersonaSummarizer()
        summarizer = AnthropicPersonaSummarizer(fake_client(""), "claude-test", fallback)
        character = make_character()
        assert await summarizer.summarize(character, "") == fallback.summarize_sync(character)

    async def test_timeout_falls_back(self):
        fallback = RuleBasedPersonaSummarizer()
        summarizer = AnthropicPersonaSummarizer(fake_client("late", delay=1.0), "claude-test", fallback, timeout=0.01)
        character = make_character()
        assert await summarizer.summarize(character, "") == fallback.summarize_sync(character)
