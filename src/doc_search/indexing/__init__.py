"""Indexing components for doc-search."""

from .chunker import SmartChunker, TextChunk, chunk, merge_chunks, normalize_text
from .pipeline import IndexingPipeline, IngestResult, ReindexResult

__all__ = [
    "SmartChunker",
    "TextChunk",
    "chunk",
    "merge_chunks",
    "normalize_text",
    "IndexingPipeline",
    "IngestResult",
    "ReindexResult",
]
