"""
Lazy embedding backfill for ranking candidates.

Records without a usable vector are embedded on demand, written back to the
store and handed to the ranker. A record whose embedding call fails is left
out of the ranking pass instead of failing the whole search.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass, replace

from loguru import logger

from ..embeddings import DOCUMENT_TASK, EmbeddingClient
from ..errors import DimensionMismatchError, EmbeddingError
from ..storage import EmbeddingStore, ProblemRecord, canonical_text
from .similarity import is_valid_embedding


@dataclass(frozen=True)
class BackfillResult:
    """Candidates ready for ranking plus counters for the pass."""

    candidates: list[ProblemRecord]
    skipped: int
    backfilled: int


class BackfillCoordinator:
    """Ensure every candidate carries a valid embedding before ranking."""

    def __init__(
        self,
        client: EmbeddingClient,
        *,
        store: EmbeddingStore | None = None,
        max_concurrency: int = 4,
    ) -> None:
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be at least 1, got {max_concurrency}")
        self.client = client
        self.store = store
        self.max_concurrency = max_concurrency

    async def ensure_embeddings(
        self,
        records: Iterable[ProblemRecord],
        *,
        dim: int | None = None,
    ) -> BackfillResult:
        """Return records with valid vectors, computing missing ones concurrently.

        *dim* is the length every vector must have (normally the query
        vector's); stored vectors of any other length are treated as stale.
        """
        records = list(records)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        slots: list[ProblemRecord | None] = [None] * len(records)
        pending: list[tuple[int, ProblemRecord]] = []

        for position, record in enumerate(records):
            if is_valid_embedding(record.embedding, dim):
                slots[position] = record
            else:
                if record.embedding is not None:
                    logger.warning(
                        f"Stored embedding for problem {record.id} is invalid "
                        f"(length {len(record.embedding)}, expected {dim}); re-embedding"
                    )
                pending.append((position, record))

        async def _fill(position: int, record: ProblemRecord) -> None:
            async with semaphore:
                slots[position] = await self._embed_record(record, dim=dim)

        tasks = [asyncio.ensure_future(_fill(position, record)) for position, record in pending]
        try:
            await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            raise

        candidates = [record for record in slots if record is not None]
        skipped = len(records) - len(candidates)
        return BackfillResult(
            candidates=candidates,
            skipped=skipped,
            backfilled=len(pending) - skipped,
        )

    async def _embed_record(
        self,
        record: ProblemRecord,
        *,
        dim: int | None,
    ) -> ProblemRecord | None:
        text = canonical_text(record)
        if not text:
            logger.warning(f"Problem {record.id} has no text to embed; skipping")
            return None

        try:
            vector = await self.client.embed(text, task_type=DOCUMENT_TASK)
        except EmbeddingError as exc:
            logger.warning(f"Embedding failed for problem {record.id}; skipping: {exc}")
            return None

        if dim is not None and len(vector) != dim:
            logger.error(
                f"Embedding for problem {record.id} has length {len(vector)}, expected {dim}"
            )
            raise DimensionMismatchError(dim, len(vector))

        if self.store is not None:
            try:
                if not self.store.update_problem_embedding(record.id, vector):
                    logger.warning(f"Problem {record.id} vanished before its embedding was saved")
            except Exception as exc:
                logger.warning(f"Could not persist embedding for problem {record.id}: {exc}")

        return replace(record, embedding=vector)
