"""Vector primitives over plain float lists."""
from __future__ import annotations

import math
from collections.abc import Sequence

from huzzology.errors import DataError

Vector = Sequence[float]


def _check_dimensions(a: Vector, b: Vector) -> None:
    if len(a) != len(b):
        raise DataError(f"Vector dimension mismatch: {len(a)} != {len(b)}")


def squared_euclidean_distance(a: Vector, b: Vector) -> float:
    _check_dimensions(a, b)
    return sum((x - y) * (x - y) for x, y in zip(a, b))


def euclidean_distance(a: Vector, b: Vector) -> float:
    return math.sqrt(squared_euclidean_distance(a, b))


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Cosine of the angle between ``a`` and ``b``; 0.0 when either is a zero vector."""
    _check_dimensions(a, b)
    dot = sum(x * y for x, y in zip(a, b))
    na = math.sqrt(sum(x * x for x in a))
    nb = math.sqrt(sum(x * x for x in b))
    if na == 0 or nb == 0:
        return 0.0
    return dot / (na * nb)


def cosine_distance(a: Vector, b: Vector) -> float:
    return 1.0 - cosine_similarity(a, b)


def centroid(vectors: Sequence[Vector]) -> list[float]:
    """Coordinate-wise mean of ``vectors``."""
    if not vectors:
        raise DataError("Cannot compute the centroid of zero vectors")
    dim = len(vectors[0])
    total = [0.0] * dim
    for vec in vectors:
        if len(vec) != dim:
            raise DataError(f"Vector dimension mismatch: {len(vec)} != {dim}")
        for i, x in enumerate(vec):
            total[i] += x
    n = len(vectors)
    return [t / n for t in total]


def mean_pairwise_cosine(vectors: Sequence[Vector]) -> float:
    """Mean cosine similarity over all unordered pairs, clamped to [0, 1].

    A single vector is perfectly cohesive. Cost is quadratic in ``len(vectors)``.
    """
    n = len(vectors)
    if n <= 1:
        return 1.0
    total = 0.0
    pairs = 0
    for i in range(n):
        for j in range(i + 1, n):
            total += cosine_similarity(vectors[i], vectors[j])
            pairs += 1
    return max(0.0, min(1.0, total / pairs))
