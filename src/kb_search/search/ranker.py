"""
Similarity ranking over a fully embedded candidate set.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from ..storage import ProblemRecord
from .similarity import cosine_similarity, is_zero_vector


@dataclass(frozen=True)
class ScoredResult:
    """A candidate paired with its similarity to the query."""

    record: ProblemRecord
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        data = self.record.to_dict()
        data["similarity"] = self.similarity
        return data


def rank(
    query_vector: Sequence[float],
    candidates: Sequence[ProblemRecord],
    *,
    threshold: float,
    limit: int,
) -> list[ScoredResult]:
    """Score candidates, keep those strictly above *threshold*, return the top *limit*."""
    if limit < 1:
        raise ValueError(f"limit must be at least 1, got {limit}")

    scored: list[ScoredResult] = []
    for candidate in candidates:
        if candidate.embedding is None:
            raise ValueError(f"Candidate {candidate.id!r} has no embedding.")
        score = cosine_similarity(query_vector, candidate.embedding)
        # Zero-magnitude vectors have no similarity and are excluded at any threshold.
        if is_zero_vector(candidate.embedding) or is_zero_vector(query_vector):
            continue
        if score > threshold:
            scored.append(ScoredResult(record=candidate, similarity=score))

    # sorted() is stable, so equal scores keep candidate order.
    ordered = sorted(scored, key=lambda result: -result.similarity)
    return ordered[:limit]
