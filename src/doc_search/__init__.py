"""
doc-search - hybrid passage retrieval over uploaded documents.

Documents are split into overlapping, sentence-aware chunks and stored in
DuckDB. Queries are answered by cosine similarity over Google GenAI
embeddings when an embedding provider is configured, and by a deterministic
lexical scorer otherwise.

Example usage:
    >>> from doc_search import open_service
    >>> service = open_service("index.duckdb")
    >>> service.add_document("notes.txt", "Machine learning is powerful.")
    >>> results = service.search("machine learning")
"""

from .config import SearchSettings, resolve_db_path
from .embeddings import (
    EmbeddingProvider,
    NullEmbeddingProvider,
    resolve_embedding_provider,
)
from .indexing import IndexingPipeline, SmartChunker, chunk
from .search import (
    HybridQueryEngine,
    LexicalScorer,
    SearchResult,
    SimilarityIndex,
    build_excerpt,
    cosine_similarity,
)
from .service import DocumentSearchService, open_service
from .storage import ChunkRecord, DocumentRecord, DuckDBStorage

__all__ = [
    # Configuration
    "SearchSettings",
    "resolve_db_path",
    # Embeddings
    "EmbeddingProvider",
    "NullEmbeddingProvider",
    "resolve_embedding_provider",
    # Indexing
    "IndexingPipeline",
    "SmartChunker",
    "chunk",
    # Search
    "HybridQueryEngine",
    "LexicalScorer",
    "SearchResult",
    "SimilarityIndex",
    "build_excerpt",
    "cosine_similarity",
    # Service
    "DocumentSearchService",
    "open_service",
    # Storage
    "ChunkRecord",
    "DocumentRecord",
    "DuckDBStorage",
]
