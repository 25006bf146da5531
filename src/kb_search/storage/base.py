"""
Storage interfaces and data models for the problem knowledge base.
"""

from __future__ import annotations

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, Protocol


@dataclass(frozen=True)
class ProblemRecord:
    """A problem/solution entry with its optional embedding."""

    id: str
    problem: str
    solution: str
    machine_part: str | None = None
    tags: list[str] = field(default_factory=list)
    created_by: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
    embedding: list[float] | None = None

    @classmethod
    def new(
        cls,
        *,
        problem: str,
        solution: str,
        machine_part: str | None = None,
        tags: list[str] | None = None,
        created_by: str | None = None,
    ) -> ProblemRecord:
        return cls(
            id=str(uuid.uuid4()),
            problem=problem,
            solution=solution,
            machine_part=machine_part,
            tags=list(tags or []),
            created_by=created_by,
        )

    def to_dict(self, *, include_embedding: bool = False) -> dict[str, Any]:
        data = asdict(self)
        if not include_embedding:
            data.pop("embedding")
        return data


def canonical_text(record: ProblemRecord) -> str:
    """Return the text embedded for *record*.

    Problem, solution and tags joined by single spaces, blanks omitted.
    Creation, update and lazy backfill all embed this same string.
    """
    parts = [record.problem, record.solution, *record.tags]
    return " ".join(part.strip() for part in parts if part and part.strip())


class EmbeddingStore(Protocol):
    """Write side of the embedding column."""

    def update_problem_embedding(self, problem_id: str, embedding: list[float]) -> bool:
        """Persist *embedding* for a problem. Return False when the id is unknown."""


class StorageBackend(EmbeddingStore, Protocol):
    """Protocol for persistence operations used by the catalog and search."""

    def initialize(self) -> None:
        """Initialize required tables."""

    def close(self) -> None:
        """Release the underlying connection."""

    def create_problem(self, record: ProblemRecord) -> ProblemRecord:
        """Insert a problem and return it as stored."""

    def get_problem(self, problem_id: str) -> ProblemRecord | None:
        """Get a problem by id."""

    def list_problems(self) -> list[ProblemRecord]:
        """Return every problem with whatever embedding it currently has."""

    def update_problem(
        self,
        problem_id: str,
        *,
        problem: str | None = None,
        solution: str | None = None,
        machine_part: str | None = None,
        tags: list[str] | None = None,
    ) -> ProblemRecord | None:
        """Update problem fields; clear the embedding if the canonical text changed."""

    def delete_problem(self, problem_id: str) -> bool:
        """Delete a problem. Return False when the id is unknown."""

    def stats(self) -> dict[str, Any]:
        """Return corpus counters."""
