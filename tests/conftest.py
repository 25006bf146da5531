from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

import pytest

from kb_search.errors import EmbeddingError
from kb_search.storage import DuckDBStorage, ProblemRecord


class FakeEmbeddingClient:
    """Deterministic embedding client with injectable failures.

    Texts found in *vectors* get that vector; any other text gets a vector
    derived from its length. Texts containing a *fail_on* marker raise
    ``EmbeddingError``.
    """

    def __init__(
        self,
        vectors: dict[str, list[float]] | None = None,
        *,
        dim: int = 3,
        fail_on: set[str] | None = None,
        delay: float = 0.0,
        model: str = "fake-embedding",
    ) -> None:
        self.vectors = vectors or {}
        self.dim = dim
        self.fail_on = fail_on or set()
        self.delay = delay
        self.model = model
        self.calls: list[tuple[str, str]] = []
        self.in_flight = 0
        self.max_in_flight = 0
        self.closed = False

    async def embed(self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT") -> list[float]:
        self.calls.append((text, task_type))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if any(marker in text for marker in self.fail_on):
                raise EmbeddingError(f"provider refused {text!r}")
            if text in self.vectors:
                return list(self.vectors[text])
            return [float(len(text))] + [1.0] * (self.dim - 1)
        finally:
            self.in_flight -= 1

    async def aclose(self) -> None:
        self.closed = True

    @property
    def texts(self) -> list[str]:
        return [text for text, _ in self.calls]


class RecordingStore:
    """In-memory embedding store that records write-through calls."""

    def __init__(self, *, fail: bool = False) -> None:
        self.fail = fail
        self.writes: dict[str, list[float]] = {}

    def update_problem_embedding(self, problem_id: str, embedding: list[float]) -> bool:
        if self.fail:
            raise RuntimeError("database is locked")
        self.writes[problem_id] = list(embedding)
        return True


def make_record(
    record_id: str,
    problem: str,
    solution: str = "",
    *,
    tags: list[str] | None = None,
    embedding: list[float] | None = None,
) -> ProblemRecord:
    return ProblemRecord(
        id=record_id,
        problem=problem,
        solution=solution,
        tags=list(tags or []),
        embedding=embedding,
    )


# ---------------------------------------------------------------------------
# Google GenAI client doubles
# ---------------------------------------------------------------------------


@dataclass
class FakeGenAIEmbedding:
    values: list[float] | None


@dataclass
class FakeGenAIEmbedResult:
    embeddings: list[FakeGenAIEmbedding] | None


class FakeGenAIModels:
    """Records calls and returns deterministic embeddings."""

    def __init__(self, *, error: Exception | None = None, values: Any = None) -> None:
        self.calls: list[dict[str, Any]] = []
        self.error = error
        self.values = values

    async def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeGenAIEmbedResult:
        self.calls.append({"model": model, "contents": contents, "config": config})
        if self.error is not None:
            raise self.error
        if self.values is not None:
            return FakeGenAIEmbedResult(embeddings=[FakeGenAIEmbedding(values=self.values)])
        dim = config.get("output_dimensionality", 768)
        return FakeGenAIEmbedResult(
            embeddings=[FakeGenAIEmbedding(values=[0.5] * dim) for _ in contents]
        )


class FakeGenAIAio:
    def __init__(self, models: FakeGenAIModels) -> None:
        self.models = models
        self.closed = False

    async def aclose(self) -> None:
        self.closed = True


class FakeGenAIClient:
    def __init__(self, **kwargs: Any) -> None:
        self.aio = FakeGenAIAio(FakeGenAIModels(**kwargs))


@pytest.fixture()
def fake_client() -> FakeEmbeddingClient:
    return FakeEmbeddingClient()


@pytest.fixture()
def storage(tmp_path):
    db = DuckDBStorage(str(tmp_path / "problems.duckdb"))
    yield db
    db.close()
