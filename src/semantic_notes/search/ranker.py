"""
Cosine similarity and threshold ranking for note embeddings.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from ..errors import DimensionMismatchError


@dataclass(frozen=True)
class NoteEmbedding:
    """A stored note vector offered as a ranking candidate."""

    id: str
    vector: list[float]
    title: str | None = None
    summary: str | None = None
    updated_at: datetime | None = None


@dataclass(frozen=True)
class SearchResult:
    """A candidate that met the similarity threshold."""

    id: str
    similarity: float
    title: str | None = None
    summary: str | None = None
    updated_at: datetime | None = None


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """
    Cosine of the angle between two vectors.

    Raises ``DimensionMismatchError`` when lengths differ. Returns 0.0 when
    either vector has zero norm or holds a NaN/infinite component, so a
    corrupted vector never clears a positive threshold.
    """
    if len(a) != len(b):
        raise DimensionMismatchError(len(a), len(b))

    scaled_a = _unit_scaled(a)
    scaled_b = _unit_scaled(b)
    if scaled_a is None or scaled_b is None:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(scaled_a, scaled_b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    if not math.isfinite(similarity):
        return 0.0
    # Rounding can push |v . v| / |v|^2 slightly past 1.
    return max(-1.0, min(1.0, similarity))


def _unit_scaled(vector: Sequence[float]) -> list[float] | None:
    """
    Divide by the largest absolute component so products neither overflow
    nor underflow. Returns None for zero or non-finite vectors.
    """
    largest = 0.0
    for value in vector:
        if not math.isfinite(value):
            return None
        largest = max(largest, abs(value))
    if largest == 0.0:
        return None
    return [value / largest for value in vector]


def rank(
    query_vector: Sequence[float],
    candidates: Sequence[NoteEmbedding],
    threshold: float,
) -> list[SearchResult]:
    """
    Score every candidate against the query and keep those at or above threshold.

    Ordering: similarity descending, then most recently updated first (notes
    without a timestamp last), then input order. One mismatched candidate
    fails the whole ranking.
    """
    scored: list[tuple[int, SearchResult]] = []
    for index, candidate in enumerate(candidates):
        similarity = cosine_similarity(query_vector, candidate.vector)
        if similarity < threshold:
            continue
        scored.append(
            (
                index,
                SearchResult(
                    id=candidate.id,
                    similarity=similarity,
                    title=candidate.title,
                    summary=candidate.summary,
                    updated_at=candidate.updated_at,
                ),
            )
        )

    def _key(item: tuple[int, SearchResult]) -> tuple[float, int, float, int]:
        index, result = item
        if result.updated_at is None:
            return (-result.similarity, 1, 0.0, index)
        return (-result.similarity, 0, -result.updated_at.timestamp(), index)

    return [result for _, result in sorted(scored, key=_key)]
