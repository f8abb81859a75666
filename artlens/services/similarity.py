"""Cosine similarity and top-K ranking of catalog entries against a query vector."""

from __future__ import annotations

from typing import List, Sequence

import numpy as np

from artlens.errors import DimensionMismatchError
from artlens.models import Artwork, MatchCandidate


def similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Return the cosine similarity of two equal-length vectors.

    Accumulation is done in float64. A zero-norm vector on either side yields
    0.0.

    Raises:
        DimensionMismatchError: If the vectors differ in length.
    """
    left = np.asarray(a, dtype=np.float64).ravel()
    right = np.asarray(b, dtype=np.float64).ravel()
    if left.shape[0] != right.shape[0]:
        raise DimensionMismatchError(left.shape[0], right.shape[0])
    left_norm = float(np.sqrt(np.dot(left, left)))
    right_norm = float(np.sqrt(np.dot(right, right)))
    if left_norm == 0.0 or right_norm == 0.0:
        return 0.0
    return float(np.dot(left, right) / (left_norm * right_norm))


def rank(query: Sequence[float], candidates: Sequence[Artwork], top_k: int) -> List[MatchCandidate]:
    """Score every indexed candidate and return the ``top_k`` best, highest first.

    Entries without an embedding are skipped. Equal scores keep their input
    order, so identical inputs always produce the identical ranking.
    """
    if top_k < 0:
        raise ValueError(f"top_k must not be negative, got {top_k}")
    if top_k == 0:
        return []
    scored = [
        MatchCandidate(artwork=artwork, score=similarity(query, artwork.embedding))
        for artwork in candidates
        if artwork.is_indexed
    ]
    # sorted() is stable, which gives the tie-break.
    scored = sorted(scored, key=lambda candidate: candidate.score, reverse=True)
    return scored[:top_k]
