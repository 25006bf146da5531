"""
Vector-based semantic search engine.

Embeds a query, backfills missing candidate embeddings, and ranks the
corpus by cosine similarity with a relevance threshold and result cap.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass

from loguru import logger

from ..config import SearchSettings
from ..embeddings import QUERY_TASK, EmbeddingClient
from ..errors import EmbeddingError, QueryValidationError, SearchUnavailableError
from ..storage import EmbeddingStore, ProblemRecord
from .backfill import BackfillCoordinator
from .ranker import ScoredResult, rank


CorpusLoader = Callable[[], Iterable[ProblemRecord]]


@dataclass(frozen=True)
class SearchOutcome:
    """Ranked results of one search plus backfill counters."""

    results: list[ScoredResult]
    skipped: int = 0
    backfilled: int = 0


class SemanticSearchEngine:
    """Embed a query and rank a full corpus scan against it."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        *,
        store: EmbeddingStore | None = None,
        threshold: float = 0.5,
        limit: int = 10,
        max_concurrency: int = 4,
    ) -> None:
        if limit < 1:
            raise ValueError(f"limit must be at least 1, got {limit}")
        self.embedding_client = embedding_client
        self.threshold = threshold
        self.limit = limit
        self.backfill = BackfillCoordinator(
            embedding_client,
            store=store,
            max_concurrency=max_concurrency,
        )

    @classmethod
    def from_settings(
        cls,
        embedding_client: EmbeddingClient,
        settings: SearchSettings,
        *,
        store: EmbeddingStore | None = None,
    ) -> SemanticSearchEngine:
        return cls(
            embedding_client,
            store=store,
            threshold=settings.similarity_threshold,
            limit=settings.result_limit,
            max_concurrency=settings.max_concurrency,
        )

    async def search(self, query: str, corpus_loader: CorpusLoader) -> SearchOutcome:
        """Return ranked hits for *query* over the records from *corpus_loader*.

        Raises ``QueryValidationError`` for a blank query and
        ``SearchUnavailableError`` when the query cannot be embedded.
        Candidates whose embedding cannot be computed are skipped.
        """
        if not query or not query.strip():
            raise QueryValidationError("Search query is required.")

        try:
            query_vector = await self.embedding_client.embed(query.strip(), task_type=QUERY_TASK)
        except EmbeddingError as exc:
            logger.error(f"Query embedding failed: {exc}")
            raise SearchUnavailableError("Semantic search is temporarily unavailable.") from exc

        records = list(corpus_loader())
        backfill = await self.backfill.ensure_embeddings(records, dim=len(query_vector))
        results = rank(
            query_vector,
            backfill.candidates,
            threshold=self.threshold,
            limit=self.limit,
        )

        logger.info(
            f"Search ranked {len(backfill.candidates)}/{len(records)} candidates "
            f"(skipped={backfill.skipped}, backfilled={backfill.backfilled}), "
            f"returned {len(results)}"
        )
        return SearchOutcome(
            results=results,
            skipped=backfill.skipped,
            backfilled=backfill.backfilled,
        )
