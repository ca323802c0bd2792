"""Assembly of a character's full biography text."""

from character_memory.domain.models import Character

# (section title, ((label, attribute), ...)) in the fixed output order
BIO_SECTIONS: tuple[tuple[str, tuple[tuple[str, str], ...]], ...] = (
    (
        "IDENTITY",
        (
            ("Name", "name"),
            ("Archetype", "archetype"),
            ("Role", "chatbot_role"),
            ("Age", "conceptual_age"),
            ("Source", "source_material"),
        ),
    ),
    (
        "APPEARANCE",
        (
            ("Description", "description"),
            ("Features", "features"),
            ("Attire", "attire"),
            ("Color preferences", "colors"),
        ),
    ),
    (
        "VOICE",
        (
            ("Tone", "tone"),
            ("Vocabulary", "vocabulary"),
            ("Pacing", "pacing"),
            ("Inflection", "inflection"),
            ("Greeting", "greeting"),
            ("Affirmation", "affirmation"),
            ("Comfort", "comfort"),
        ),
    ),
    (
        "PERSONALITY",
        (
            ("Primary traits", "primary_traits"),
            ("Secondary traits", "secondary_traits"),
            ("Quirks", "quirks"),
            ("Approach", "approach"),
            ("Patience", "patience"),
            ("Demeanor", "demeanor"),
            ("Adaptability", "adaptability"),
            ("Core abilities", "core_abilities"),
        ),
    ),
    (
        "GOALS & MOTIVATION",
        (
            ("Primary motivation", "primary_motivation"),
            ("Core goal", "core_goal"),
            ("Secondary goals", "secondary_goals"),
        ),
    ),
    (
        "BOUNDARIES",
        (
            ("Forbidden topics", "forbidden_topics"),
            ("Interaction policy", "interaction_policy"),
            ("Conflict resolution", "conflict_resolution"),
        ),
    ),
)

# Signature phrases are quoted verbatim
QUOTED_FIELDS = frozenset({"greeting", "affirmation", "comfort"})


def _format_value(attribute: str, value: object) -> str | None:
    if value is None:
        return None
    if isinstance(value, list):
        items = [str(item).strip() for item in value if str(item).strip()]
        return ", ".join(items) if items else None
    text = str(value).strip()
    if not text:
        return None
    return f'"{text}"' if attribute in QUOTED_FIELDS else text


def build_full_bio(character: Character) -> str:
    """Render the character's structured fields as labelled sections.

    Missing fields are omitted, and a section with no populated field is
    omitted entirely.
    """
    sections: list[str] = []
    for title, fields in BIO_SECTIONS:
        lines = []
        for label, attribute in fields:
            value = _format_value(attribute, getattr(character, attribute, None))
            if value is not None:
                lines.append(f"{label}: {value}")
        if lines:
            sections.append(f"{title}:\n" + "\n".join(lines))
    return "\n\n".join(sections)
