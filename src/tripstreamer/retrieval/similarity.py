"""
Similarity ranking over embedding vectors.

Both functions are pure: no store access, no embedding calls. The retrieval
service embeds the query, loads candidates, and hands everything here.
"""

from __future__ import annotations

import math
from typing import Sequence, TypeVar

import numpy as np

T = TypeVar("T")


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """
    Cosine similarity over the shared prefix of two vectors.

    Vectors of different length are compared on their first
    min(len(a), len(b)) components. Returns 0.0 when either side has zero
    norm over that prefix.
    """
    length = min(len(a), len(b))
    if length == 0:
        return 0.0

    va = np.asarray(a[:length], dtype=np.float64)
    vb = np.asarray(b[:length], dtype=np.float64)

    norm_a = float(np.dot(va, va))
    norm_b = float(np.dot(vb, vb))
    if norm_a == 0 or norm_b == 0:
        return 0.0

    return float(np.dot(va, vb)) / math.sqrt(norm_a * norm_b)


def rank(
    query: Sequence[float] | np.ndarray,
    candidates: Sequence[tuple[T, Sequence[float] | np.ndarray]],
    top_k: int,
) -> list[tuple[T, float]]:
    """
    Score candidates against the query and return the best top_k.

    Args:
        query: Query embedding
        candidates: (item, embedding) pairs, in storage order
        top_k: Maximum number of results

    Returns:
        (item, score) pairs sorted by descending score. Ties keep the input
        order (sorted() is stable, including with reverse=True).
    """
    if top_k <= 0:
        return []

    scored = [(item, cosine_similarity(query, embedding)) for item, embedding in candidates]
    scored = sorted(scored, key=lambda pair: pair[1], reverse=True)
    return scored[:top_k]
