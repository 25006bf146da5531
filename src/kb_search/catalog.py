"""
Problem catalog: create/update/delete with eager embedding.
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from loguru import logger

from .embeddings import DOCUMENT_TASK, EmbeddingClient
from .errors import EmbeddingError
from .search.backfill import BackfillCoordinator
from .storage import ProblemRecord, StorageBackend, canonical_text


@dataclass(frozen=True)
class ReembedResult:
    """Summary output for a full re-embedding run."""

    total: int
    embedded: int
    failed: int


class ProblemCatalog:
    """Write path for problems; embeds each record as soon as it is saved."""

    def __init__(
        self,
        storage: StorageBackend,
        embedding_provider: EmbeddingClient | None = None,
        max_concurrency: int = 4,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider
        self._max_concurrency = max_concurrency

    async def create(
        self,
        *,
        problem: str,
        solution: str,
        machine_part: str | None = None,
        tags: list[str] | None = None,
        created_by: str | None = None,
    ) -> ProblemRecord:
        if not problem.strip():
            raise ValueError("Problem description is required.")
        if not solution.strip():
            raise ValueError("Solution is required.")

        record = self.storage.create_problem(
            ProblemRecord.new(
                problem=problem,
                solution=solution,
                machine_part=machine_part,
                tags=tags,
                created_by=created_by,
            )
        )
        return await self._embed_eagerly(record)

    async def update(
        self,
        problem_id: str,
        *,
        problem: str | None = None,
        solution: str | None = None,
        machine_part: str | None = None,
        tags: list[str] | None = None,
    ) -> ProblemRecord | None:
        if problem is not None and not problem.strip():
            raise ValueError("Problem description cannot be empty.")
        if solution is not None and not solution.strip():
            raise ValueError("Solution cannot be empty.")

        updated = self.storage.update_problem(
            problem_id,
            problem=problem,
            solution=solution,
            machine_part=machine_part,
            tags=tags,
        )
        if updated is None:
            return None
        # Storage clears the vector when the canonical text changed.
        if updated.embedding is None:
            return await self._embed_eagerly(updated)
        return updated

    def delete(self, problem_id: str) -> bool:
        return self.storage.delete_problem(problem_id)

    async def reembed_all(self) -> ReembedResult:
        """Embed the whole corpus again with the current model.

        A stored vector is only overwritten once its replacement has been
        computed, so records that fail keep their previous vector.
        """
        if self.embedding_provider is None:
            raise ValueError("An embedding provider is required to re-embed the corpus.")

        records = [replace(record, embedding=None) for record in self.storage.list_problems()]
        coordinator = BackfillCoordinator(
            self.embedding_provider,
            store=self.storage,
            max_concurrency=self._max_concurrency,
        )
        result = await coordinator.ensure_embeddings(records, dim=self.embedding_provider.dim)
        if result.skipped:
            logger.warning(
                f"{result.skipped} of {len(records)} problems could not be re-embedded "
                "and keep their previous vectors"
            )
        logger.info(
            f"Re-embedded {result.backfilled} of {len(records)} problems "
            f"with {self.embedding_provider.model}"
        )
        return ReembedResult(total=len(records), embedded=result.backfilled, failed=result.skipped)

    async def _embed_eagerly(self, record: ProblemRecord) -> ProblemRecord:
        if self.embedding_provider is None:
            return record
        try:
            vector = await self.embedding_provider.embed(
                canonical_text(record), task_type=DOCUMENT_TASK
            )
        except EmbeddingError as exc:
            # Left for lazy backfill at search time.
            logger.warning(f"Failed to generate embedding for problem {record.id}: {exc}")
            return record

        self.storage.update_problem_embedding(record.id, vector)
        return replace(record, embedding=vector)
