"""Composite relevance scoring and pruning retention.

Every boost is a positive multiplicative factor, so a boost never flips
the sign of a memory's similarity.
"""

from datetime import datetime

from character_memory.core.config import ScoringConfig
from character_memory.domain.models import Importance, MemoryChunk
from character_memory.domain.models.utils import ensure_aware, utc_now

SECONDS_PER_DAY = 86_400.0


def age_in_days(created_at: datetime, now: datetime | None = None) -> float:
    """Non-negative age; clock skew never makes a memory younger than new."""
    now = now or utc_now()
    return max(0.0, (ensure_aware(now) - ensure_aware(created_at)).total_seconds() / SECONDS_PER_DAY)


def recency_boost(age_days: float, config: ScoringConfig) -> float:
    """Decays from 1.0 at age zero towards ``recency_floor``, halving the gap every half-life."""
    decay = 0.5 ** (max(age_days, 0.0) / config.recency_half_life_days)
    return config.recency_floor + (1.0 - config.recency_floor) * decay


def emotional_boost(emotional_weight: float, config: ScoringConfig) -> float:
    return 1.0 + config.emotional_span * min(max(emotional_weight, 0.0), 1.0)


def importance_boost(importance: Importance, config: ScoringConfig) -> float:
    return {
        Importance.LOW: config.importance_low,
        Importance.MEDIUM: config.importance_medium,
        Importance.HIGH: config.importance_high,
    }[importance]


def composite_score(
    similarity: float,
    chunk: MemoryChunk,
    config: ScoringConfig,
    weight_emotional: bool = True,
    boost_recent: bool = True,
    now: datetime | None = None,
) -> float:
    """``similarity * recency * emotional * importance`` with disabled boosts at 1.0."""
    recency = recency_boost(age_in_days(chunk.created_at, now), config) if boost_recent else 1.0
    emotional = emotional_boost(chunk.emotional_weight, config) if weight_emotional else 1.0
    return similarity * recency * emotional * importance_boost(chunk.importance, config)


def retention_score(chunk: MemoryChunk, config: ScoringConfig, now: datetime | None = None) -> float:
    """How much a memory deserves to survive pruning; higher is kept longer.

    Weighted sum of emotional weight, importance rank (0..1) and recency
    (0..1, where 1 is brand new and 0 is at the recency floor).
    """
    recency = recency_boost(age_in_days(chunk.created_at, now), config)
    recency_span = 1.0 - config.recency_floor
    normalized_recency = (recency - config.recency_floor) / recency_span if recency_span > 0 else 1.0
    return (
        config.retention_emotional_weight * chunk.emotional_weight
        + config.retention_importance_weight * (chunk.importance.rank / 2)
        + config.retention_recency_weight * normalized_recency
    )
