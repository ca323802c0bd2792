"""Character domain model.

Characters are created and edited elsewhere; this engine only reads their
descriptive fields and re-derives ``full_bio`` and ``core_persona_summary``.
"""

from datetime import datetime

from pydantic import BaseModel, Field

from character_memory.domain.models.utils import utc_now


class Character(BaseModel):
    """A dialogue character and its structured description."""

    id: str = Field(min_length=1)
    owner_id: str | None = None

    # Identity
    name: str = Field(min_length=1)
    archetype: str | None = None
    chatbot_role: str | None = None
    conceptual_age: str | None = None
    source_material: str | None = None

    # Appearance
    description: str | None = None
    features: str | None = None
    attire: str | None = None
    colors: list[str] = Field(default_factory=list)

    # Voice
    tone: list[str] = Field(default_factory=list)
    vocabulary: str | None = None
    pacing: str | None = None
    inflection: str | None = None
    greeting: str | None = None
    affirmation: str | None = None
    comfort: str | None = None

    # Personality
    primary_traits: list[str] = Field(default_factory=list)
    secondary_traits: list[str] = Field(default_factory=list)
    quirks: list[str] = Field(default_factory=list)
    approach: str | None = None
    patience: str | None = None
    demeanor: str | None = None
    adaptability: str | None = None
    core_abilities: list[str] = Field(default_factory=list)

    # Goals
    primary_motivation: str | None = None
    core_goal: str | None = None
    secondary_goals: list[str] = Field(default_factory=list)

    # Boundaries
    forbidden_topics: list[str] = Field(default_factory=list)
    interaction_policy: str | None = None
    conflict_resolution: str | None = None

    # Derived by ingestion
    full_bio: str | None = None
    core_persona_summary: str | None = None
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def fallback_persona(self) -> str:
        """Persona line used before the first ingestion has produced a summary."""
        return f"You are {self.name}. Stay in character."
