"""
Storage interfaces and data models for document and chunk persistence.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Any, Protocol


EmbeddingVector = tuple[float, ...]


def make_chunk_id(doc_id: str, position: int) -> str:
    """Stable identifier for the chunk at ``position`` of a document."""
    digest = hashlib.sha1(f"{doc_id}:{position}".encode("utf-8")).hexdigest()
    return f"chunk_{digest}"


@dataclass(frozen=True)
class ChunkRecord:
    """A text chunk stored for a document."""

    id: str
    doc_id: str
    position: int
    text: str
    seq: int = 0
    embedding: EmbeddingVector | None = None

    @property
    def has_embedding(self) -> bool:
        return self.embedding is not None


@dataclass(frozen=True)
class DocumentRecord:
    """An uploaded document with its extracted text."""

    id: str
    filename: str
    content: str
    created_at: str | None = None


class StorageBackend(Protocol):
    """Protocol for persistence operations used by indexing and search."""

    def initialize(self) -> None:
        """Initialize required tables/indexes."""

    def store_document(
        self, document: DocumentRecord, chunks: list[ChunkRecord]
    ) -> list[ChunkRecord]:
        """Insert a document with its chunks. Return chunks with assigned seq."""

    def list_chunks(self, *, only_embedded: bool = False) -> list[ChunkRecord]:
        """Return stored chunks in insertion order, with vectors when present."""

    def get_chunk(self, chunk_id: str) -> ChunkRecord | None:
        """Get a chunk by id."""

    def get_vector(self, chunk_id: str) -> EmbeddingVector | None:
        """Return the stored vector for a chunk, or None when absent."""

    def put_vector(self, chunk_id: str, vector: EmbeddingVector) -> bool:
        """Replace the vector of a chunk. Return False when the chunk is unknown."""

    def get_document(self, doc_id: str) -> DocumentRecord | None:
        """Get a document by id."""

    def get_documents(self, doc_ids: list[str]) -> dict[str, DocumentRecord]:
        """Fetch several documents at once, keyed by id."""

    def list_documents(self) -> list[dict[str, Any]]:
        """List documents with chunk counts, newest first."""

    def delete_document(self, doc_id: str) -> bool:
        """Delete a document and its chunks. Return False when unknown."""

    def get_stats(self) -> dict[str, Any]:
        """Return corpus statistics."""

    def has_embeddings(self) -> bool:
        """Return True if any chunk has a stored vector."""
