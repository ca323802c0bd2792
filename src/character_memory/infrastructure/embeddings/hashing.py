"""Offline embedding service based on feature hashing.

Used whenever no live provider credential is configured. Vectors are a pure
function of the text: word unigrams and character trigrams are hashed into
a fixed number of signed buckets and the result is L2-normalised, so texts
that share vocabulary land close together.
"""

import hashlib
import re
from collections.abc import Sequence

import numpy as np

from character_memory.core.errors import EmptyInputError
from character_memory.core.logging import get_logger
from character_memory.domain.models import HealthStatus
from character_memory.domain.services import InputType

logger = get_logger(__name__)

_WORD_RE = re.compile(r"\w+", re.UNICODE)

WORD_WEIGHT = 1.0
TRIGRAM_WEIGHT = 0.5


class HashingEmbeddingService:
    """Deterministic pseudo-embeddings of a fixed dimensionality."""

    def __init__(self, dimensions: int = 1024) -> None:
        if dimensions <= 0:
            raise ValueError("dimensions must be positive")
        self.dimensions = dimensions
        self.model = f"feature-hash-{dimensions}"

    def _bucket(self, feature: str) -> tuple[int, float]:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        value = int.from_bytes(digest, "big")
        sign = 1.0 if value & 1 else -1.0
        return (value >> 1) % self.dimensions, sign

    def _features(self, text: str) -> list[tuple[str, float]]:
        words = [w.lower() for w in _WORD_RE.findall(text)]
        features: list[tuple[str, float]] = [(f"w:{w}", WORD_WEIGHT) for w in words]
        for word in words:
            padded = f"#{word}#"
            features.extend(
                (f"t:{padded[i:i + 3]}", TRIGRAM_WEIGHT) for i in range(len(padded) - 2)
            )
        if not features:
            # Punctuation or symbols only
            features.append((f"x:{text.strip()}", WORD_WEIGHT))
        return features

    def _vectorize(self, text: str) -> list[float]:
        if not text.strip():
            raise EmptyInputError("Cannot embed empty text")

        vector = np.zeros(self.dimensions, dtype=np.float64)
        for feature, weight in self._features(text):
            index, sign = self._bucket(feature)
            vector[index] += sign * weight

        norm = np.linalg.norm(vector)
        if norm > 0:
            vector /= norm
        return vector.tolist()

    async def embed_text(self, text: str, input_type: InputType = "document") -> list[float]:
        """Embed one text; the input type does not change the vector."""
        return self._vectorize(text)

    async def embed_batch(self, texts: Sequence[str]) -> list[list[float]]:
        if not texts:
            return []
        return [self._vectorize(text) for text in texts]

    def get_model_dimensions(self) -> int:
        return self.dimensions

    async def health_check(self) -> HealthStatus:
        return HealthStatus.from_components({"embeddings": True})

    async def close(self) -> None:
        logger.debug("Hashing embedding service closed")
