"""Utility functions for domain models."""

from datetime import UTC, datetime


def utc_now() -> datetime:
    """Get the current UTC datetime with timezone awareness."""
    return datetime.now(UTC)


def ensure_aware(value: datetime) -> datetime:
    """Treat naive datetimes coming back from a backend as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value
