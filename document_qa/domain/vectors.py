from __future__ import annotations

import math
from typing import Sequence, List


def l2_norm(values: Sequence[float]) -> float:
    return math.sqrt(sum(v * v for v in values))


def l2_normalize(values: Sequence[float]) -> List[float]:
    """Scale ``values`` to unit length; the zero vector is returned unchanged."""
    norm = l2_norm(values)
    if norm == 0:
        return [float(v) for v in values]
    return [float(v) / norm for v in values]


def is_normalized(values: Sequence[float], tol: float = 1e-6) -> bool:
    return abs(l2_norm(values) - 1.0) <= tol


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity between two vectors of equal dimension (0.0 when either is zero)."""
    if len(a) != len(b):
        raise ValueError("Vectors must have the same dimension")
    dot = sum(x * y for x, y in zip(a, b))
    norm_a = l2_norm(a)
    norm_b = l2_norm(b)
    if norm_a == 0 or norm_b == 0:
        return 0.0
    return dot / (norm_a * norm_b)
