"""
Embedding providers for vector-based semantic search.

Wraps the Google GenAI embedding API (or a self-hosted HTTP embedding
service) behind a single async ``embed`` call. Every provider failure is
reported as ``EmbeddingError``; nothing is retried or cached here.
"""

from __future__ import annotations

import math
import os
from typing import Any, Protocol

import httpx
from google.genai import Client as GenAIClient

from .config import SearchSettings
from .errors import EmbeddingError


_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768

QUERY_TASK = "RETRIEVAL_QUERY"
DOCUMENT_TASK = "RETRIEVAL_DOCUMENT"


class EmbeddingClient(Protocol):
    """Anything that turns one text into one vector."""

    model: str
    dim: int

    async def embed(self, text: str, *, task_type: str = DOCUMENT_TASK) -> list[float]:
        """Return the embedding of *text* or raise ``EmbeddingError``."""

    async def aclose(self) -> None:
        """Release the underlying connection pool."""


def _coerce_vector(raw: Any, *, dim: int, source: str) -> list[float]:
    if raw is None:
        raise EmbeddingError(f"{source} returned no embedding values.")
    try:
        values = [float(v) for v in raw]
    except (TypeError, ValueError) as exc:
        raise EmbeddingError(f"{source} returned non-numeric embedding values.", cause=exc) from exc
    if len(values) != dim:
        raise EmbeddingError(
            f"{source} returned {len(values)} dimensions, expected {dim}."
        )
    if not all(math.isfinite(v) for v in values):
        raise EmbeddingError(f"{source} returned non-finite embedding values.")
    return values


def _require_text(text: str) -> None:
    if not text or not text.strip():
        raise EmbeddingError("Cannot embed empty text.")


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("KB_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("KB_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(api_key=resolved_key)

    async def embed(self, text: str, *, task_type: str = DOCUMENT_TASK) -> list[float]:
        """Embed a single text with the pinned model."""
        _require_text(text)
        try:
            result = await self._client.aio.models.embed_content(
                model=self.model,
                contents=[text],
                config={
                    "task_type": task_type,
                    "output_dimensionality": self.dim,
                },
            )
        except Exception as exc:
            raise EmbeddingError(f"Embedding request to {self.model} failed: {exc}", cause=exc) from exc

        embeddings = getattr(result, "embeddings", None)
        if not embeddings:
            raise EmbeddingError(f"{self.model} returned no embeddings.")
        return _coerce_vector(embeddings[0].values, dim=self.dim, source=self.model)

    async def aclose(self) -> None:
        # Older google-genai releases have no async close.
        close = getattr(self._client.aio, "aclose", None)
        if close is not None:
            await close()


class HttpEmbeddingProvider:
    """Generate text embeddings via a self-hosted ``POST /embed`` service."""

    def __init__(
        self,
        base_url: str,
        *,
        model: str = "http",
        dim: int = _DEFAULT_DIM,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.dim = dim
        self._client = client or httpx.AsyncClient(timeout=timeout)

    async def embed(self, text: str, *, task_type: str = DOCUMENT_TASK) -> list[float]:  # noqa: ARG002
        _require_text(text)
        try:
            response = await self._client.post(f"{self.base_url}/embed", json={"text": text})
            response.raise_for_status()
            payload = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise EmbeddingError(f"Embedding service at {self.base_url} failed: {exc}", cause=exc) from exc

        if not isinstance(payload, dict):
            raise EmbeddingError("Embedding service returned a non-object payload.")
        return _coerce_vector(payload.get("embedding"), dim=self.dim, source=self.base_url)

    async def aclose(self) -> None:
        await self._client.aclose()


def create_embedding_provider(
    settings: SearchSettings,
) -> EmbeddingProvider | HttpEmbeddingProvider:
    """Build the single embedding provider configured for this deployment."""
    if settings.embedding_provider == "http":
        if not settings.embedding_url:
            raise ValueError(
                "KB_SEARCH_EMBEDDING_URL must be set when the http embedding provider is used."
            )
        return HttpEmbeddingProvider(
            settings.embedding_url,
            model=settings.embedding_model,
            dim=settings.embedding_dim,
            timeout=settings.embedding_timeout,
        )
    return EmbeddingProvider(model=settings.embedding_model, dim=settings.embedding_dim)
