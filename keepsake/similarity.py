"""
Vector similarity and ranking.
"""

import math
from typing import Callable, Optional, Sequence, TypeVar

T = TypeVar("T")


def cosine_similarity(a: Optional[Sequence[float]], b: Optional[Sequence[float]]) -> float:
    """
    Cosine similarity of two vectors, in [-1, 1].

    Returns exactly 0.0 when either vector is missing, empty or all
    zeros, or when the lengths differ. Never raises and never returns NaN.
    """
    if not a or not b or len(a) != len(b):
        return 0.0
    try:
        dot = math.fsum(x * y for x, y in zip(a, b))
        norm_a = math.sqrt(math.fsum(x * x for x in a))
        norm_b = math.sqrt(math.fsum(y * y for y in b))
    except (TypeError, ValueError, OverflowError):
        return 0.0
    if norm_a == 0 or norm_b == 0:
        return 0.0
    sim = dot / (norm_a * norm_b)
    if math.isnan(sim):
        return 0.0
    # Rounding can push identical vectors a hair past 1
    return max(-1.0, min(1.0, sim))


def rank(
    query_embedding: Sequence[float],
    candidates: list[T],
    embedding_of: Callable[[T], Optional[Sequence[float]]],
    limit: int = 10,
) -> list[tuple[T, float]]:
    """
    Score candidates against a query and keep the best ``limit``.

    Sorted by similarity descending. Candidates with equal scores keep
    their original order (``sorted`` is stable).
    """
    scored = [(c, cosine_similarity(query_embedding, embedding_of(c))) for c in candidates]
    scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
    return scored[:max(0, limit)]
