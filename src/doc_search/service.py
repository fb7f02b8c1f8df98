"""
Wiring of storage, embeddings, indexing and search into one service object.
"""

from __future__ import annotations

from typing import Any

from .config import SearchSettings, resolve_db_path
from .embeddings import SupportsEmbedding, resolve_embedding_provider
from .indexing import IndexingPipeline, IngestResult, ReindexResult, SmartChunker
from .search import HybridQueryEngine, SearchResponse, SearchResult
from .storage import ChunkRecord, DocumentRecord, DuckDBStorage


class DocumentSearchService:
    """Upload, search and maintenance operations over one document index."""

    def __init__(
        self,
        storage: DuckDBStorage,
        embedding_provider: SupportsEmbedding,
        settings: SearchSettings | None = None,
    ) -> None:
        self.settings = settings or SearchSettings()
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.pipeline = IndexingPipeline(
            storage=storage,
            chunker=SmartChunker(
                chunk_size=self.settings.chunk_size,
                overlap=self.settings.chunk_overlap,
            ),
            embedding_provider=embedding_provider,
            max_workers=self.settings.embed_workers,
        )
        self.engine = HybridQueryEngine(
            storage,
            embedding_provider,
            min_similarity=self.settings.min_similarity,
            excerpt_length=self.settings.excerpt_length,
        )

    def close(self) -> None:
        close_provider = getattr(self.embedding_provider, "close", None)
        if callable(close_provider):
            close_provider()
        self.storage.close()

    @property
    def embeddings_configured(self) -> bool:
        return bool(getattr(self.embedding_provider, "available", False))

    def add_document(
        self, filename: str, content: str, *, embed: bool = True
    ) -> IngestResult:
        return self.pipeline.ingest(filename, content, embed=embed)

    def embed_chunks(self, chunks: list[ChunkRecord]) -> tuple[int, int]:
        return self.pipeline.embed_chunks(chunks)

    def search(
        self,
        query: str,
        limit: int | None = None,
        *,
        per_document: bool = False,
    ) -> list[SearchResult]:
        effective_limit = self.settings.default_limit if limit is None else limit
        return self.engine.search(query, effective_limit, per_document=per_document)

    def execute(
        self,
        query: str,
        limit: int | None = None,
        *,
        per_document: bool = False,
    ) -> SearchResponse:
        effective_limit = self.settings.default_limit if limit is None else limit
        return self.engine.execute(query, effective_limit, per_document=per_document)

    def get_document(self, doc_id: str) -> DocumentRecord | None:
        return self.storage.get_document(doc_id)

    def list_documents(self) -> list[dict[str, Any]]:
        return self.storage.list_documents()

    def delete_document(self, doc_id: str) -> bool:
        return self.storage.delete_document(doc_id)

    def reindex(self, *, force: bool = False) -> ReindexResult:
        return self.pipeline.reindex(force=force)

    def stats(self) -> dict[str, Any]:
        return {
            **self.storage.get_stats(),
            "embedding_model": getattr(self.embedding_provider, "model", "none"),
            "embeddings_configured": self.embeddings_configured,
        }


def open_service(
    db_path: str | None = None,
    *,
    embedding_provider: SupportsEmbedding | None = None,
    settings: SearchSettings | None = None,
) -> DocumentSearchService:
    """Build a service from configuration, deciding on embeddings once."""
    settings = settings or SearchSettings.from_env()
    storage = DuckDBStorage(resolve_db_path(db_path))
    provider = embedding_provider or resolve_embedding_provider(
        max_workers=settings.embed_workers
    )
    try:
        return DocumentSearchService(storage, provider, settings)
    except ValueError:
        storage.close()
        raise
