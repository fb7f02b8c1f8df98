"""Storage backends for doc-search."""

from .base import (
    ChunkRecord,
    DocumentRecord,
    EmbeddingVector,
    StorageBackend,
    make_chunk_id,
)
from .duckdb import DuckDBStorage

__all__ = [
    "ChunkRecord",
    "DocumentRecord",
    "EmbeddingVector",
    "StorageBackend",
    "DuckDBStorage",
    "make_chunk_id",
]
