"""Tests for eager embedding in the problem catalog."""

from __future__ import annotations

import pytest

from conftest import FakeEmbeddingClient
from kb_search.catalog import ProblemCatalog
from kb_search.search import SemanticSearchEngine
from kb_search.storage import DuckDBStorage, canonical_text


@pytest.mark.asyncio
async def test_create_embeds_canonical_text(storage: DuckDBStorage) -> None:
    client = FakeEmbeddingClient({"pump leaks oil replace seal hydraulic": [0.1, 0.2, 0.3]})
    catalog = ProblemCatalog(storage, embedding_provider=client)

    record = await catalog.create(
        problem="pump leaks oil",
        solution="replace seal",
        machine_part="pump",
        tags=["hydraulic"],
    )

    assert record.embedding == [0.1, 0.2, 0.3]
    assert storage.get_problem(record.id).embedding == [0.1, 0.2, 0.3]
    assert client.calls == [("pump leaks oil replace seal hydraulic", "RETRIEVAL_DOCUMENT")]


@pytest.mark.asyncio
async def test_create_survives_embedding_failure(storage: DuckDBStorage) -> None:
    catalog = ProblemCatalog(storage, embedding_provider=FakeEmbeddingClient(fail_on={"pump"}))

    record = await catalog.create(problem="pump leaks oil", solution="replace seal")

    assert record.embedding is None
    assert storage.get_problem(record.id) is not None


@pytest.mark.asyncio
async def test_create_without_provider_stores_record(storage: DuckDBStorage) -> None:
    record = await ProblemCatalog(storage).create(problem="belt noise", solution="tension belt")

    assert storage.get_problem(record.id).embedding is None


@pytest.mark.asyncio
async def test_create_requires_problem_and_solution(storage: DuckDBStorage) -> None:
    catalog = ProblemCatalog(storage)

    with pytest.raises(ValueError):
        await catalog.create(problem="  ", solution="fix")
    with pytest.raises(ValueError):
        await catalog.create(problem="pump", solution="")
    assert storage.list_problems() == []


@pytest.mark.asyncio
async def test_update_re_embeds_only_when_text_changes(storage: DuckDBStorage) -> None:
    client = FakeEmbeddingClient()
    catalog = ProblemCatalog(storage, embedding_provider=client)
    record = await catalog.create(problem="belt noise", solution="tension belt")
    assert len(client.calls) == 1

    await catalog.update(record.id, machine_part="conveyor")
    assert len(client.calls) == 1

    updated = await catalog.update(record.id, solution="replace worn belt")
    assert len(client.calls) == 2
    assert client.texts[-1] == canonical_text(updated)
    assert storage.get_problem(record.id).embedding == updated.embedding

    assert await catalog.update("unknown", problem="x") is None


@pytest.mark.asyncio
async def test_eager_and_lazy_paths_converge(storage: DuckDBStorage) -> None:
    client = FakeEmbeddingClient()
    eager = await ProblemCatalog(storage, embedding_provider=client).create(
        problem="gearbox overheating", solution="refill oil", tags=["thermal"]
    )
    lazy = await ProblemCatalog(storage).create(
        problem="gearbox overheating", solution="refill oil", tags=["thermal"]
    )

    engine = SemanticSearchEngine(client, store=storage, threshold=-1.0)
    await engine.search("gearbox", storage.list_problems)

    assert storage.get_problem(lazy.id).embedding == eager.embedding


@pytest.mark.asyncio
async def test_reembed_all_replaces_vectors_that_succeed(storage: DuckDBStorage) -> None:
    old_client = FakeEmbeddingClient(dim=2)
    catalog = ProblemCatalog(storage, embedding_provider=old_client)
    for problem in ["pump leaks", "belt noise", "broken sensor"]:
        await catalog.create(problem=problem, solution="fixed")

    new_client = FakeEmbeddingClient(dim=3, fail_on={"sensor"})
    result = await ProblemCatalog(storage, embedding_provider=new_client).reembed_all()

    assert result.total == 3
    assert result.embedded == 2
    assert result.failed == 1
    lengths = {p.problem: p.embedding and len(p.embedding) for p in storage.list_problems()}
    assert lengths == {"pump leaks": 3, "belt noise": 3, "broken sensor": 2}


@pytest.mark.asyncio
async def test_reembed_all_keeps_vectors_when_provider_is_down(storage: DuckDBStorage) -> None:
    catalog = ProblemCatalog(storage, embedding_provider=FakeEmbeddingClient(dim=2))
    for problem in ["pump leaks", "belt noise"]:
        await catalog.create(problem=problem, solution="fixed")
    before = {p.id: p.embedding for p in storage.list_problems()}

    down = FakeEmbeddingClient(dim=2, fail_on={""})
    result = await ProblemCatalog(storage, embedding_provider=down).reembed_all()

    assert result.embedded == 0
    assert result.failed == 2
    assert len(down.calls) == 2
    assert {p.id: p.embedding for p in storage.list_problems()} == before
    assert storage.stats()["with_embedding"] == 2


@pytest.mark.asyncio
async def test_reembed_requires_provider(storage: DuckDBStorage) -> None:
    with pytest.raises(ValueError):
        await ProblemCatalog(storage).reembed_all()


@pytest.mark.asyncio
async def test_delete(storage: DuckDBStorage) -> None:
    catalog = ProblemCatalog(storage)
    record = await catalog.create(problem="loose bolt", solution="tighten")

    assert catalog.delete(record.id) is True
    assert catalog.delete(record.id) is False
    assert storage.list_problems() == []
