"""
Configuration helpers for storage and retrieval settings.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field


DEFAULT_DB_PATH = "~/.kb_search/problems.duckdb"
ENV_DB_PATH = "KB_SEARCH_DB_PATH"

_ENV_PREFIX = "KB_SEARCH_"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) KB_SEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


class SearchSettings(BaseModel):
    """Deployment settings for the retrieval engine and its embedding provider."""

    similarity_threshold: float = Field(default=0.5, ge=-1.0, le=1.0)
    result_limit: int = Field(default=10, ge=1)
    max_concurrency: int = Field(default=4, ge=1)
    embedding_provider: Literal["genai", "http"] = "genai"
    embedding_model: str = "gemini-embedding-001"
    embedding_dim: int = Field(default=768, ge=1)
    embedding_url: str | None = None
    embedding_timeout: float = Field(default=30.0, gt=0)

    @classmethod
    def from_env(cls) -> SearchSettings:
        """Build settings from ``KB_SEARCH_*`` environment variables.

        Unset variables keep the field default; malformed values raise
        ``pydantic.ValidationError``.
        """
        values: dict[str, str] = {}
        for name in cls.model_fields:
            raw = os.getenv(f"{_ENV_PREFIX}{name.upper()}")
            if raw is not None and raw.strip():
                values[name] = raw.strip()
        return cls.model_validate(values)
