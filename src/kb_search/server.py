"""
FastAPI server for the problem knowledge base.

Provides CRUD endpoints for problems and the semantic search endpoint.
Authentication and authorization are handled in front of this service.
"""

from fastapi import FastAPI
from fastapi.responses import JSONResponse
from loguru import logger
from pydantic import BaseModel, Field

from .catalog import ProblemCatalog
from .config import SearchSettings, resolve_db_path
from .embeddings import EmbeddingClient, create_embedding_provider
from .errors import DimensionMismatchError, QueryValidationError, SearchUnavailableError
from .search import SemanticSearchEngine
from .storage import DuckDBStorage

app = FastAPI(title="kb-search", description="Semantic search over a problem knowledge base")


class ProblemRequest(BaseModel):
    """Request model for problem creation."""

    problem: str = Field(min_length=1)
    solution: str = Field(min_length=1)
    machine_part: str | None = None
    tags: list[str] = Field(default_factory=list)
    created_by: str | None = None


class ProblemUpdateRequest(BaseModel):
    """Request model for partial problem updates."""

    problem: str | None = None
    solution: str | None = None
    # An empty string clears the machine part.
    machine_part: str | None = None
    tags: list[str] | None = None


class SearchRequest(BaseModel):
    """Request model for search queries."""

    query: str = ""


def _settings() -> SearchSettings:
    return SearchSettings.from_env()


def _open_storage() -> DuckDBStorage:
    return DuckDBStorage(resolve_db_path())


def _embedding_provider() -> EmbeddingClient | None:
    """Return the configured provider, or None when it is not configured."""
    try:
        return create_embedding_provider(_settings())
    except ValueError as exc:
        logger.warning(f"Embedding provider unavailable: {exc}")
        return None


def _catalog(storage: DuckDBStorage) -> ProblemCatalog:
    return ProblemCatalog(
        storage,
        embedding_provider=_embedding_provider(),
        max_concurrency=_settings().max_concurrency,
    )


async def _close_provider(provider: EmbeddingClient | None) -> None:
    if provider is not None:
        await provider.aclose()


@app.post("/api/problems", status_code=201)
async def create_problem(request: ProblemRequest):
    """Create a problem and embed it eagerly."""
    storage = _open_storage()
    catalog = _catalog(storage)
    try:
        record = await catalog.create(
            problem=request.problem,
            solution=request.solution,
            machine_part=request.machine_part,
            tags=request.tags,
            created_by=request.created_by,
        )
        return record.to_dict()
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    finally:
        await _close_provider(catalog.embedding_provider)
        storage.close()


@app.get("/api/problems")
async def list_problems():
    storage = _open_storage()
    try:
        return {"problems": [record.to_dict() for record in storage.list_problems()]}
    finally:
        storage.close()


@app.get("/api/problems/{problem_id}")
async def get_problem(problem_id: str):
    storage = _open_storage()
    try:
        record = storage.get_problem(problem_id)
        if record is None:
            return JSONResponse({"error": "Problem not found"}, status_code=404)
        return record.to_dict()
    finally:
        storage.close()


@app.put("/api/problems/{problem_id}")
async def update_problem(problem_id: str, request: ProblemUpdateRequest):
    """Update a problem; re-embeds when its text changed."""
    storage = _open_storage()
    catalog = _catalog(storage)
    try:
        record = await catalog.update(
            problem_id,
            problem=request.problem,
            solution=request.solution,
            machine_part=request.machine_part,
            tags=request.tags,
        )
        if record is None:
            return JSONResponse({"error": "Problem not found"}, status_code=404)
        return record.to_dict()
    except ValueError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    finally:
        await _close_provider(catalog.embedding_provider)
        storage.close()


@app.delete("/api/problems/{problem_id}")
async def delete_problem(problem_id: str):
    storage = _open_storage()
    try:
        if not storage.delete_problem(problem_id):
            return JSONResponse({"error": "Problem not found"}, status_code=404)
        return {"deleted": problem_id}
    finally:
        storage.close()


@app.post("/api/problems/search")
async def search_problems(request: SearchRequest):
    """Rank every problem by similarity to the query."""
    if not request.query.strip():
        return JSONResponse({"error": "Search query is required"}, status_code=400)

    embedding_provider = _embedding_provider()
    if embedding_provider is None:
        return JSONResponse(
            {"error": "Semantic search is not available.", "retryable": False},
            status_code=503,
        )

    storage = _open_storage()
    try:
        engine = SemanticSearchEngine.from_settings(
            embedding_provider,
            _settings(),
            store=storage,
        )
        outcome = await engine.search(request.query, storage.list_problems)
        return {
            "query": request.query,
            "results": [result.to_dict() for result in outcome.results],
            "skipped": outcome.skipped,
        }
    except QueryValidationError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)
    except SearchUnavailableError as exc:
        return JSONResponse({"error": str(exc), "retryable": True}, status_code=503)
    except DimensionMismatchError as exc:
        logger.error(f"Search aborted on inconsistent embeddings: {exc}")
        return JSONResponse(
            {"error": "Search failed", "reason": "data_integrity"}, status_code=500
        )
    except Exception as exc:
        logger.exception(f"Search error: {exc}")
        return JSONResponse({"error": "Search failed"}, status_code=500)
    finally:
        await embedding_provider.aclose()
        storage.close()


@app.post("/api/embeddings/reembed")
async def reembed_problems():
    """Re-embed the whole corpus with the configured model."""
    embedding_provider = _embedding_provider()
    if embedding_provider is None:
        return JSONResponse({"error": "Embedding provider is not configured."}, status_code=503)

    storage = _open_storage()
    try:
        catalog = ProblemCatalog(
            storage,
            embedding_provider=embedding_provider,
            max_concurrency=_settings().max_concurrency,
        )
        result = await catalog.reembed_all()
        return {
            "db_path": storage.db_path,
            "total": result.total,
            "embedded": result.embedded,
            "failed": result.failed,
        }
    finally:
        await embedding_provider.aclose()
        storage.close()


@app.get("/api/stats")
async def get_stats():
    storage = _open_storage()
    try:
        return storage.stats()
    finally:
        storage.close()
