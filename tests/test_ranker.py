"""Tests for threshold, ordering and truncation in the ranker."""

from __future__ import annotations

import math

import pytest

from conftest import make_record
from kb_search.errors import DimensionMismatchError
from kb_search.search import rank


def _unit(cos: float) -> list[float]:
    """2-d unit vector whose cosine with [1, 0] is *cos*."""
    return [cos, math.sqrt(1 - cos * cos)]


QUERY = [1.0, 0.0]


def test_rank_filters_sorts_and_truncates() -> None:
    candidates = [
        make_record(f"p{i}", f"problem {i}", embedding=_unit(score))
        for i, score in enumerate([0.2, 0.9, 0.55, 0.95, 0.6, 0.51])
    ]

    results = rank(QUERY, candidates, threshold=0.5, limit=3)

    assert [r.record.id for r in results] == ["p3", "p1", "p4"]
    scores = [r.similarity for r in results]
    assert scores == sorted(scores, reverse=True)
    assert all(score > 0.5 for score in scores)


def test_threshold_is_strict() -> None:
    candidates = [make_record("edge", "edge", embedding=[1.0, 0.0])]

    assert rank(QUERY, candidates, threshold=1.0, limit=10) == []
    assert len(rank(QUERY, candidates, threshold=0.999, limit=10)) == 1


def test_equal_scores_keep_input_order() -> None:
    candidates = [
        make_record("first", "a", embedding=[2.0, 0.0]),
        make_record("better", "b", embedding=[1.0, 0.0]),
        make_record("second", "c", embedding=[3.0, 3.0]),
        make_record("third", "d", embedding=[5.0, 0.0]),
    ]

    results = rank(QUERY, candidates, threshold=0.0, limit=10)

    assert [r.record.id for r in results] == ["first", "better", "third", "second"]


def test_empty_candidates_yield_empty_result() -> None:
    assert rank(QUERY, [], threshold=0.5, limit=10) == []


def test_limit_must_be_positive() -> None:
    with pytest.raises(ValueError):
        rank(QUERY, [], threshold=0.5, limit=0)


def test_dimension_mismatch_propagates() -> None:
    candidates = [make_record("stale", "old model", embedding=[1.0, 0.0, 0.0])]

    with pytest.raises(DimensionMismatchError):
        rank(QUERY, candidates, threshold=0.5, limit=10)


def test_zero_vectors_are_excluded_below_zero_threshold() -> None:
    candidates = [
        make_record("zero", "blank vector", embedding=[0.0, 0.0]),
        make_record("opposite", "unrelated", embedding=_unit(-0.2)),
    ]

    results = rank(QUERY, candidates, threshold=-0.5, limit=10)

    assert [r.record.id for r in results] == ["opposite"]
    assert rank([0.0, 0.0], candidates, threshold=-0.5, limit=10) == []


def test_scored_result_to_dict_omits_embedding() -> None:
    candidates = [make_record("p1", "pump leaks oil", "replace seal", embedding=_unit(0.8))]

    result = rank(QUERY, candidates, threshold=0.5, limit=10)[0].to_dict()

    assert result["id"] == "p1"
    assert result["similarity"] == pytest.approx(0.8)
    assert "embedding" not in result
