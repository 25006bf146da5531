"""Storage backends for the problem knowledge base."""

from .base import EmbeddingStore, ProblemRecord, StorageBackend, canonical_text
from .duckdb import DuckDBStorage

__all__ = [
    "EmbeddingStore",
    "ProblemRecord",
    "StorageBackend",
    "canonical_text",
    "DuckDBStorage",
]
