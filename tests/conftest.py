"""Shared fakes and fixtures for doc-search tests."""

from __future__ import annotations

import re
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import pytest

from doc_search.storage import (
    ChunkRecord,
    DocumentRecord,
    DuckDBStorage,
    make_chunk_id,
)

VOCABULARY = (
    "machine",
    "learning",
    "purchase",
    "price",
    "risk",
    "litigation",
    "recipe",
    "garden",
)


def keyword_vector(text: str) -> list[float]:
    """Bag-of-words vector over a tiny fixed vocabulary."""
    words = re.findall(r"\w+", text.lower())
    return [float(words.count(term)) for term in VOCABULARY]


# ---------------------------------------------------------------------------
# Fake GenAI client
# ---------------------------------------------------------------------------


@dataclass
class FakeEmbedding:
    values: list[float]


@dataclass
class FakeEmbedResult:
    embeddings: list[FakeEmbedding]


class FakeEmbedModels:
    """Records calls and returns keyword vectors, with optional failures."""

    def __init__(
        self,
        *,
        fail_on: str | None = None,
        slow_on: str | None = None,
        delay: float = 1.0,
        vector_fn: Callable[[str], list[float]] = keyword_vector,
    ) -> None:
        self.calls: list[dict[str, Any]] = []
        self.fail_on = fail_on
        self.slow_on = slow_on
        self.delay = delay
        self.vector_fn = vector_fn
        self._lock = threading.Lock()

    def embed_content(
        self, *, model: str, contents: list[str], config: dict
    ) -> FakeEmbedResult:
        with self._lock:
            self.calls.append({"model": model, "contents": contents, "config": config})
        if self.fail_on and any(self.fail_on in text for text in contents):
            raise RuntimeError("429 RESOURCE_EXHAUSTED")
        if self.slow_on and any(self.slow_on in text for text in contents):
            time.sleep(self.delay)
        return FakeEmbedResult(
            embeddings=[FakeEmbedding(values=self.vector_fn(text)) for text in contents]
        )


class FakeGenAIClient:
    def __init__(self, **kwargs: Any) -> None:
        self.models = FakeEmbedModels(**kwargs)


# ---------------------------------------------------------------------------
# Provider doubles implementing the provider protocol directly
# ---------------------------------------------------------------------------


class StaticProvider:
    """Provider returning vectors from a function; None means failure."""

    available = True
    model = "static-test-model"

    def __init__(
        self,
        vector_fn: Callable[[str], list[float] | None] = keyword_vector,
        *,
        query_vector_fn: Callable[[str], list[float] | None] | None = None,
    ) -> None:
        self.vector_fn = vector_fn
        self.query_vector_fn = query_vector_fn or vector_fn
        self.embedded: list[str] = []
        self._lock = threading.Lock()

    def embed(self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT"):
        with self._lock:
            self.embedded.append(text)
        vector = self.vector_fn(text)
        return tuple(vector) if vector is not None else None

    def embed_query(self, query: str):
        vector = self.query_vector_fn(query)
        return tuple(vector) if vector is not None else None

    def embed_texts(self, texts: list[str], *, task_type: str = "RETRIEVAL_DOCUMENT"):
        return [self.embed(text) for text in texts]


# ---------------------------------------------------------------------------
# Storage helpers
# ---------------------------------------------------------------------------


def store_chunks(
    storage: DuckDBStorage,
    filename: str,
    texts: list[str],
    *,
    doc_id: str | None = None,
) -> list[ChunkRecord]:
    """Store a document whose chunks are exactly ``texts``."""
    doc_id = doc_id or f"doc_{filename}"
    records = [
        ChunkRecord(
            id=make_chunk_id(doc_id, position),
            doc_id=doc_id,
            position=position,
            text=text,
        )
        for position, text in enumerate(texts)
    ]
    document = DocumentRecord(id=doc_id, filename=filename, content=" ".join(texts))
    return storage.store_document(document, records)


@pytest.fixture()
def storage(tmp_path: Path):
    backend = DuckDBStorage(str(tmp_path / "index.duckdb"))
    yield backend
    backend.close()
