"""Semantic retrieval over the problem corpus."""

from .backfill import BackfillCoordinator, BackfillResult
from .ranker import ScoredResult, rank
from .semantic import CorpusLoader, SearchOutcome, SemanticSearchEngine
from .similarity import (
    UNDEFINED_SIMILARITY,
    cosine_similarity,
    is_valid_embedding,
    is_zero_vector,
)

__all__ = [
    "BackfillCoordinator",
    "BackfillResult",
    "ScoredResult",
    "rank",
    "CorpusLoader",
    "SearchOutcome",
    "SemanticSearchEngine",
    "UNDEFINED_SIMILARITY",
    "cosine_similarity",
    "is_valid_embedding",
    "is_zero_vector",
]
