"""
kb-search - semantic retrieval for a problem/solution knowledge base.

Ranks stored problems by meaning rather than keywords: the query and every
record are embedded, missing record embeddings are backfilled on demand,
and records are ranked by cosine similarity above a relevance threshold.

Example usage:
    >>> from kb_search import DuckDBStorage, EmbeddingProvider, SemanticSearchEngine
    >>> storage = DuckDBStorage("problems.duckdb")
    >>> engine = SemanticSearchEngine(EmbeddingProvider(), store=storage)
    >>> outcome = await engine.search("hydraulic leak", storage.list_problems)
"""

from .catalog import ProblemCatalog, ReembedResult
from .config import SearchSettings, resolve_db_path
from .embeddings import (
    EmbeddingClient,
    EmbeddingProvider,
    HttpEmbeddingProvider,
    create_embedding_provider,
)
from .errors import (
    DimensionMismatchError,
    EmbeddingError,
    QueryValidationError,
    SearchError,
    SearchUnavailableError,
)
from .search import (
    BackfillCoordinator,
    ScoredResult,
    SearchOutcome,
    SemanticSearchEngine,
    cosine_similarity,
    rank,
)
from .storage import DuckDBStorage, ProblemRecord, canonical_text

__all__ = [
    # Catalog
    "ProblemCatalog",
    "ReembedResult",
    # Config
    "SearchSettings",
    "resolve_db_path",
    # Embeddings
    "EmbeddingClient",
    "EmbeddingProvider",
    "HttpEmbeddingProvider",
    "create_embedding_provider",
    # Errors
    "DimensionMismatchError",
    "EmbeddingError",
    "QueryValidationError",
    "SearchError",
    "SearchUnavailableError",
    # Search
    "BackfillCoordinator",
    "ScoredResult",
    "SearchOutcome",
    "SemanticSearchEngine",
    "cosine_similarity",
    "rank",
    # Storage
    "DuckDBStorage",
    "ProblemRecord",
    "canonical_text",
]
