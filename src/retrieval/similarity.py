"""Cosine similarity scoring and ranking.

Vectors are never assumed to be normalized. A zero-norm, non-finite or
wrongly sized vector scores ``-inf`` so it ranks last instead of leaking
``NaN`` into the ordering.
"""

from __future__ import annotations

from typing import Sequence

import numpy as np

from src.rag.logging_config import get_logger

logger = get_logger(__name__)

INVALID_SCORE = float("-inf")

Vector = Sequence[float]


def cosine_similarity(a: Vector, b: Vector) -> float:
    """Return ``(a . b) / (|a| |b|)``, or ``-inf`` when it is undefined."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.ndim != 1 or va.shape != vb.shape or va.size == 0:
        return INVALID_SCORE

    denominator = np.linalg.norm(va) * np.linalg.norm(vb)
    if not np.isfinite(denominator) or denominator == 0.0:
        return INVALID_SCORE

    score = float(np.dot(va, vb) / denominator)
    return score if np.isfinite(score) else INVALID_SCORE


def cosine_similarities(query: Vector, vectors: Sequence[Vector]) -> np.ndarray:
    """Score every stored vector against the query in one pass."""
    if not vectors:
        return np.empty(0, dtype=np.float64)

    q = np.asarray(query, dtype=np.float64)
    matrix = np.asarray(vectors, dtype=np.float64)
    if q.ndim != 1 or matrix.ndim != 2 or matrix.shape[1] != q.shape[0] or q.size == 0:
        logger.warning(
            "Query vector of shape %s does not match stored vectors of shape %s",
            q.shape,
            matrix.shape,
        )
        return np.full(len(vectors), INVALID_SCORE)

    with np.errstate(divide="ignore", invalid="ignore"):
        denominators = np.linalg.norm(matrix, axis=1) * np.linalg.norm(q)
        scores = (matrix @ q) / denominators

    invalid = ~np.isfinite(scores) | (denominators == 0.0)
    if invalid.any():
        logger.warning("%d vector(s) have no defined cosine similarity", int(invalid.sum()))
        scores[invalid] = INVALID_SCORE
    return scores


def rank_by_similarity(
    query: Vector, vectors: Sequence[Vector]
) -> list[tuple[int, float]]:
    """Return ``(position, score)`` pairs, most similar first.

    Equal scores keep their insertion order, so the ranking is reproducible.
    """
    scores = cosine_similarities(query, vectors)
    order = np.argsort(-scores, kind="stable")
    return [(int(i), float(scores[i])) for i in order]
