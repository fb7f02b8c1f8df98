"""
Configuration helpers for index storage and search tuning.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path


DEFAULT_DB_PATH = "~/.doc_search/index.duckdb"
ENV_DB_PATH = "DOC_SEARCH_DB_PATH"


def resolve_db_path(override_path: str | None = None) -> str:
    """
    Resolve the DuckDB path from CLI override, env var, or default.

    Precedence:
    1) explicit override_path
    2) DOC_SEARCH_DB_PATH
    3) default path
    """
    raw_path = override_path or os.getenv(ENV_DB_PATH) or DEFAULT_DB_PATH
    if raw_path == ":memory:":
        return raw_path
    resolved = Path(raw_path).expanduser().resolve()
    resolved.parent.mkdir(parents=True, exist_ok=True)
    return str(resolved)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from None


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}") from None


@dataclass(frozen=True)
class SearchSettings:
    """Tunables for chunking, embedding fan-out and ranking."""

    chunk_size: int = 200
    chunk_overlap: int = 20
    min_similarity: float = 0.1
    excerpt_length: int = 200
    embed_workers: int = 4
    default_limit: int = 10

    @classmethod
    def from_env(cls) -> "SearchSettings":
        defaults = cls()
        return cls(
            chunk_size=_env_int("DOC_SEARCH_CHUNK_SIZE", defaults.chunk_size),
            chunk_overlap=_env_int("DOC_SEARCH_CHUNK_OVERLAP", defaults.chunk_overlap),
            min_similarity=_env_float(
                "DOC_SEARCH_MIN_SIMILARITY", defaults.min_similarity
            ),
            excerpt_length=_env_int(
                "DOC_SEARCH_EXCERPT_LENGTH", defaults.excerpt_length
            ),
            embed_workers=_env_int("DOC_SEARCH_EMBED_WORKERS", defaults.embed_workers),
            default_limit=_env_int("DOC_SEARCH_DEFAULT_LIMIT", defaults.default_limit),
        )
