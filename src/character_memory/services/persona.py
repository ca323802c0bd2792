"""Core persona summaries.

A persona summary is the short, always-on description of a character that
opens every prompt. The rule-based summarizer is deterministic and needs no
network; the Anthropic-backed one condenses the full biography with a model
and falls back to the rule-based text whenever the provider fails.
"""

import asyncio
import math
import re

import anthropic

from character_memory.core.base import AIServiceErrorDetails
from character_memory.core.errors import ProviderError
from character_memory.core.logging import get_logger
from character_memory.domain.models import Character

logger = get_logger(__name__)

_TERMINAL = re.compile(r"[.!?][\"')\]]*$")


def count_words(text: str) -> int:
    return len(text.split())


def enforce_word_limit(text: str, max_words: int) -> str:
    """Cut ``text`` to at most ``max_words`` whitespace-separated words.

    A truncated summary is closed with a period so it still reads as prose.
    """
    words = text.split()
    if len(words) <= max_words:
        return " ".join(words)

    clipped = " ".join(words[:max_words]).rstrip(",;:-")
    if not _TERMINAL.search(clipped):
        clipped += "."
    return clipped


def _join(items: list[str], limit: int | None = None) -> str:
    items = [item.strip() for item in items if item and item.strip()]
    if limit is not None:
        items = items[:limit]
    if len(items) <= 1:
        return "".join(items)
    return ", ".join(items[:-1]) + " and " + items[-1]


def _sentence(text: str) -> str:
    text = text.strip()
    return text if _TERMINAL.search(text) else text + "."


class RuleBasedPersonaSummarizer:
    """Builds a second-person persona from the identity-defining fields.

    Sentences are added in priority order until the next one would push the
    summary past ``target_words``; the result never exceeds ``max_words``.
    """

    def __init__(self, target_words: int = 200, max_words: int = 300) -> None:
        self.target_words = target_words
        self.max_words = max_words

    def _sentences(self, character: Character) -> list[str]:
        sentences: list[str] = []

        identity = f"You are {character.name}"
        roles = [part for part in (character.archetype, character.chatbot_role) if part]
        if roles:
            identity += ", " + " and ".join(roles)
        sentences.append(_sentence(identity))

        traits = _join(character.primary_traits, limit=4)
        if traits:
            sentences.append(_sentence(f"You are {traits}"))

        voice = []
        if character.tone:
            voice.append(f"a {_join(character.tone, limit=3)} tone")
        if character.vocabulary:
            voice.append(f"{character.vocabulary.strip().lower()} vocabulary")
        if voice:
            sentences.append(_sentence(f"You speak with {' and '.join(voice)}"))
        if character.pacing:
            sentences.append(_sentence(f"Your pacing is {character.pacing.strip().lower()}"))

        if character.approach:
            sentences.append(_sentence(f"Your approach is to {character.approach.strip().lower()}"))
        if character.demeanor:
            sentences.append(_sentence(f"Your demeanor is {character.demeanor.strip().lower()}"))

        if character.primary_motivation:
            sentences.append(_sentence(f"You are driven by {character.primary_motivation.strip()}"))
        if character.core_goal:
            sentences.append(_sentence(f"Your core goal: {character.core_goal.strip()}"))

        secondary = _join(character.secondary_traits, limit=3)
        if secondary:
            sentences.append(_sentence(f"You can also be {secondary}"))
        quirks = _join(character.quirks, limit=3)
        if quirks:
            sentences.append(_sentence(f"Your quirks include {quirks}"))
        if character.greeting:
            sentences.append(_sentence(f'You greet people with "{character.greeting.strip()}"'))

        forbidden = _join(character.forbidden_topics)
        if forbidden:
            sentences.append(_sentence(f"You never discuss {forbidden}"))
        if character.interaction_policy:
            sentences.append(_sentence(character.interaction_policy))

        return sentences

    def summarize_sync(self, character: Character) -> str:
        selected: list[str] = []
        words = 0
        for sentence in self._sentences(character):
            length = count_words(sentence)
            if selected and words + length > self.target_words:
                break
            selected.append(sentence)
            words += length
        return enforce_word_limit(" ".join(selected), self.max_words)

    async def summarize(self, character: Character, full_bio: str) -> str:
        return self.summarize_sync(character)


PERSONA_PROMPT = """You are an expert character designer. Write a condensed personality summary of \
about {target_words} words for an AI character. It will be used verbatim as a system prompt, so \
address the character in the second person ("You are ...").

Character:
- Name: {name}
- Archetype: {archetype}
- Role: {role}
- Primary traits: {traits}
- Speaking tone: {tone}
- Approach: {approach}
- Demeanor: {demeanor}
- Vocabulary: {vocabulary}

Full biography:
{bio}

Requirements:
1. Focus only on core personality, speaking style and primary motivations
2. Use clear, direct language
3. Do not describe physical appearance
4. Never exceed {max_words} words

Reply with the summary only."""


class AnthropicPersonaSummarizer:
    """Persona summaries written by a Claude model."""

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str,
        fallback: RuleBasedPersonaSummarizer,
        timeout: float = 20.0,
        bio_excerpt_chars: int = 2000,
    ) -> None:
        self.client = client
        self.model = model
        self.fallback = fallback
        self.timeout = timeout
        self.bio_excerpt_chars = bio_excerpt_chars

    def _prompt(self, character: Character, full_bio: str) -> str:
        unspecified = "Not specified"
        return PERSONA_PROMPT.format(
            target_words=self.fallback.target_words,
            max_words=self.fallback.max_words,
            name=character.name,
            archetype=character.archetype or unspecified,
            role=character.chatbot_role or unspecified,
            traits=", ".join(character.primary_traits) or unspecified,
            tone=", ".join(character.tone) or unspecified,
            approach=character.approach or unspecified,
            demeanor=character.demeanor or unspecified,
            vocabulary=character.vocabulary or unspecified,
            bio=full_bio[: self.bio_excerpt_chars],
        )

    def _details(self) -> AIServiceErrorDetails:
        return AIServiceErrorDetails(
            source="AnthropicPersonaSummarizer",
            operation="summarize",
            service_name="Anthropic",
            endpoint="/v1/messages",
            model_name=self.model,
        )

    async def _generate(self, character: Character, full_bio: str) -> str:
        try:
            response = await asyncio.wait_for(
                self.client.messages.create(
                    model=self.model,
                    max_tokens=math.ceil(self.fallback.max_words * 1.5),
                    temperature=0.3,
                    messages=[{"role": "user", "content": self._prompt(character, full_bio)}],
                ),
                timeout=self.timeout,
            )
        except (anthropic.APIError, TimeoutError) as e:
            raise ProviderError(message=f"Persona generation failed: {e}", details=self._details()) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", None) == "text").strip()
        if not text:
            raise ProviderError(message="Persona generation returned no text", details=self._details())
        return text

    async def summarize(self, character: Character, full_bio: str) -> str:
        try:
            summary = await self._generate(character, full_bio)
        except ProviderError as e:
            logger.warning(
                "Falling back to rule-based persona",
                character_id=character.id,
                error=e.message,
            )
            return await self.fallback.summarize(character, full_bio)
        return enforce_word_limit(summary, self.fallback.max_words)
