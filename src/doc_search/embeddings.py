"""
Embedding provider for vector-based semantic search.

Wraps the Google GenAI embedding API for batch and single-text embedding
with configurable model, dimensions, batch size and per-call timeout.
Failures never propagate: a call that errors or times out yields ``None``.
"""

from __future__ import annotations

import math
import os
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Any, Protocol

from google.genai import Client as GenAIClient
from google.genai.types import HttpOptions
from loguru import logger

from .storage import EmbeddingVector

_DEFAULT_MODEL = "gemini-embedding-001"
_DEFAULT_DIM = 768
_DEFAULT_BATCH_SIZE = 50
_DEFAULT_TIMEOUT = 10.0
_DEFAULT_WORKERS = 4
_PLACEHOLDER_KEY = "your_google_api_key_here"


class SupportsEmbedding(Protocol):
    """What indexing and search need from an embedding provider."""

    available: bool
    model: str

    def embed(
        self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT"
    ) -> EmbeddingVector | None: ...

    def embed_query(self, query: str) -> EmbeddingVector | None: ...

    def embed_texts(self, texts: list[str]) -> list[EmbeddingVector | None]: ...


def _to_vector(values: Any) -> EmbeddingVector | None:
    if values is None:
        return None
    try:
        vector = tuple(float(value) for value in values)
    except (TypeError, ValueError):
        return None
    if not vector or not all(math.isfinite(value) for value in vector):
        return None
    return vector


class EmbeddingProvider:
    """Generate text embeddings via Google GenAI."""

    available = True

    def __init__(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        dim: int | None = None,
        batch_size: int | None = None,
        timeout: float | None = None,
        max_workers: int | None = None,
        client: Any | None = None,
    ) -> None:
        self.model = model or os.getenv("DOC_SEARCH_EMBEDDING_MODEL", _DEFAULT_MODEL)
        self.dim = dim or int(os.getenv("DOC_SEARCH_EMBEDDING_DIM", str(_DEFAULT_DIM)))
        self.batch_size = batch_size or int(
            os.getenv("DOC_SEARCH_EMBEDDING_BATCH_SIZE", str(_DEFAULT_BATCH_SIZE))
        )
        self.timeout = timeout or float(
            os.getenv("DOC_SEARCH_EMBEDDING_TIMEOUT", str(_DEFAULT_TIMEOUT))
        )
        if self.timeout <= 0:
            raise ValueError("Embedding timeout must be > 0")

        if client is not None:
            self._client = client
        else:
            resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
            if resolved_key is None:
                raise ValueError(
                    "GOOGLE_API_KEY not found. "
                    "Provide api_key or set the environment variable."
                )
            self._client = GenAIClient(
                api_key=resolved_key,
                http_options=HttpOptions(timeout=int(self.timeout * 1000)),
            )

        # Calls run on a private pool so a hung request can be abandoned.
        self.max_workers = max_workers or _DEFAULT_WORKERS
        self._executor = ThreadPoolExecutor(
            max_workers=self.max_workers,
            thread_name_prefix="embed",
        )

    def close(self) -> None:
        self._executor.shutdown(wait=False, cancel_futures=True)

    def embed(
        self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT"
    ) -> EmbeddingVector | None:
        """Embed one text. Return None on error, timeout or malformed output."""
        if not text or not text.strip():
            return None
        vectors = self._embed_batch([text], task_type=task_type)
        return vectors[0]

    def embed_query(self, query: str) -> EmbeddingVector | None:
        """Embed a single query text for retrieval."""
        return self.embed(query, task_type="RETRIEVAL_QUERY")

    def embed_texts(
        self,
        texts: list[str],
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> list[EmbeddingVector | None]:
        """Embed a list of texts in batches.

        Returns one entry per text in the same order; a failed batch yields
        ``None`` for each of its members. The indexing pipeline embeds chunks
        one call at a time instead, so a failure never spans several chunks.
        """
        all_embeddings: list[EmbeddingVector | None] = []
        for start in range(0, len(texts), self.batch_size):
            batch = texts[start : start + self.batch_size]
            all_embeddings.extend(self._embed_batch(batch, task_type=task_type))
        return all_embeddings

    def _embed_batch(
        self, batch: list[str], *, task_type: str
    ) -> list[EmbeddingVector | None]:
        started = threading.Event()

        def run() -> Any:
            started.set()
            return self._call_api(batch, task_type)

        future = self._executor.submit(run)
        # The timeout covers the call itself, not time queued behind other calls.
        while not started.wait(0.05):
            if future.done():
                break
        try:
            result = future.result(timeout=self.timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(
                f"Embedding call timed out after {self.timeout}s ({len(batch)} texts)"
            )
            return [None] * len(batch)
        except Exception as exc:
            logger.warning(f"Embedding call failed ({len(batch)} texts): {exc}")
            return [None] * len(batch)

        embeddings = list(getattr(result, "embeddings", None) or [])
        if len(embeddings) != len(batch):
            logger.warning(
                f"Embedding response has {len(embeddings)} vectors for {len(batch)} texts"
            )
            return [None] * len(batch)

        vectors: list[EmbeddingVector | None] = []
        for emb in embeddings:
            vector = _to_vector(getattr(emb, "values", None))
            if vector is None:
                logger.warning("Discarding malformed embedding in response")
            vectors.append(vector)
        return vectors

    def _call_api(self, batch: list[str], task_type: str) -> Any:
        return self._client.models.embed_content(
            model=self.model,
            contents=batch,
            config={
                "task_type": task_type,
                "output_dimensionality": self.dim,
            },
        )


class NullEmbeddingProvider:
    """Stand-in used when no embedding service is configured."""

    available = False
    model = "none"

    def embed(
        self, text: str, *, task_type: str = "RETRIEVAL_DOCUMENT"
    ) -> EmbeddingVector | None:
        return None

    def embed_query(self, query: str) -> EmbeddingVector | None:
        return None

    def embed_texts(
        self,
        texts: list[str],
        *,
        task_type: str = "RETRIEVAL_DOCUMENT",
    ) -> list[EmbeddingVector | None]:
        return [None] * len(texts)

    def close(self) -> None:
        return None


def resolve_embedding_provider(
    api_key: str | None = None,
    *,
    max_workers: int | None = None,
) -> EmbeddingProvider | NullEmbeddingProvider:
    """Pick the embedding provider once, at startup, from configuration."""
    resolved_key = api_key or os.getenv("GOOGLE_API_KEY")
    if not resolved_key or resolved_key == _PLACEHOLDER_KEY:
        logger.info("GOOGLE_API_KEY not configured; semantic search disabled")
        return NullEmbeddingProvider()
    return EmbeddingProvider(api_key=resolved_key, max_workers=max_workers)
