from collections.abc import Sequence

import numpy as np

from character_memory.core.errors import DimensionMismatchError


def cosine_similarity(vector_a: Sequence[float], vector_b: Sequence[float]) -> float:
    """
    Compute the cosine similarity between two embedding vectors.

    Args:
        vector_a: First embedding vector
        vector_b: Second embedding vector

    Returns:
        Similarity in [-1, 1]; 0.0 when either vector has zero norm

    Raises:
        DimensionMismatchError: If the vectors differ in length
    """
    if len(vector_a) != len(vector_b):
        raise DimensionMismatchError(expected=len(vector_a), actual=len(vector_b))

    a = np.asarray(vector_a, dtype=np.float64)
    b = np.asarray(vector_b, dtype=np.float64)

    norm_a = np.linalg.norm(a)
    norm_b = np.linalg.norm(b)

    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.clip(np.dot(a, b) / (norm_a * norm_b), -1.0, 1.0))
