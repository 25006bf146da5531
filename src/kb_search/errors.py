"""
Error types raised by the retrieval engine.
"""

from __future__ import annotations


class SearchError(Exception):
    """Base class for retrieval failures."""


class QueryValidationError(SearchError, ValueError):
    """Raised when a search query is empty or whitespace-only."""


class EmbeddingError(SearchError):
    """Raised when the embedding provider cannot produce a vector.

    Covers an unreachable provider, malformed output and refused input alike;
    the original exception is kept on ``cause``.
    """

    def __init__(self, message: str, *, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class SearchUnavailableError(SearchError):
    """Raised when the query itself could not be embedded. Safe to retry."""

    retryable = True


class DimensionMismatchError(SearchError, ValueError):
    """Raised when two compared vectors have different lengths."""

    def __init__(self, left: int, right: int) -> None:
        super().__init__(
            f"Cannot compare vectors of different dimensions: {left} != {right}. "
            "Stored embeddings may come from a different model; re-embed the corpus."
        )
        self.left = left
        self.right = right
