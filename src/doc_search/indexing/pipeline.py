"""
Indexing pipeline orchestration.
"""

from __future__ import annotations

import uuid
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from loguru import logger

from .chunker import SmartChunker
from ..embeddings import SupportsEmbedding
from ..search.similarity import SimilarityIndex
from ..storage import ChunkRecord, DocumentRecord, StorageBackend, make_chunk_id


@dataclass(frozen=True)
class IngestResult:
    """Summary output for one ingested document."""

    doc_id: str | None
    filename: str
    chunks_written: int
    embeddings_written: int = 0
    embeddings_failed: int = 0
    chunks: tuple[ChunkRecord, ...] = field(default=(), repr=False)

    @property
    def indexed(self) -> bool:
        return self.doc_id is not None


@dataclass(frozen=True)
class ReindexResult:
    """Summary output for a reindex run."""

    candidates: int
    embeddings_written: int
    embeddings_failed: int


class IndexingPipeline:
    """Chunk documents, store them and attach embeddings to their chunks."""

    def __init__(
        self,
        storage: StorageBackend,
        chunker: SmartChunker | None = None,
        embedding_provider: SupportsEmbedding | None = None,
        max_workers: int = 4,
    ) -> None:
        if max_workers < 1:
            raise ValueError("max_workers must be >= 1")
        self.storage = storage
        self.chunker = chunker or SmartChunker()
        self.embedding_provider = embedding_provider
        self.index = SimilarityIndex(storage)
        self._max_workers = max_workers

    @property
    def embeddings_enabled(self) -> bool:
        provider = self.embedding_provider
        return provider is not None and bool(getattr(provider, "available", True))

    def ingest(self, filename: str, content: str, *, embed: bool = True) -> IngestResult:
        """Chunk and store a document, then embed its chunks unless ``embed`` is off.

        Text that yields no chunks is not stored.
        """
        pieces = self.chunker.chunk_text(content)
        if not pieces:
            logger.info(f"Nothing to index in {filename!r}")
            return IngestResult(doc_id=None, filename=filename, chunks_written=0)

        doc_id = uuid.uuid4().hex
        document = DocumentRecord(id=doc_id, filename=filename, content=content)
        chunk_records = [
            ChunkRecord(
                id=make_chunk_id(doc_id, piece.position),
                doc_id=doc_id,
                position=piece.position,
                text=piece.text,
            )
            for piece in pieces
        ]
        stored = self.storage.store_document(document, chunk_records)

        written = failed = 0
        if embed:
            written, failed = self.embed_chunks(stored)

        logger.info(
            f"Stored {filename!r} as {doc_id} "
            f"({len(stored)} chunks, {written} embedded, {failed} failed)"
        )
        return IngestResult(
            doc_id=doc_id,
            filename=filename,
            chunks_written=len(stored),
            embeddings_written=written,
            embeddings_failed=failed,
            chunks=tuple(stored),
        )

    def embed_and_index(self, chunk_id: str, text: str) -> bool:
        """Embed one chunk and store its vector. Return False on any failure."""
        provider = self.embedding_provider
        if provider is None or not self.embeddings_enabled:
            return False
        try:
            vector = provider.embed(text)
        except Exception as exc:
            logger.warning(f"Embedding chunk {chunk_id} raised: {exc}")
            return False
        if vector is None:
            return False
        return self.index.upsert(chunk_id, vector)

    def embed_chunks(self, chunks: list[ChunkRecord]) -> tuple[int, int]:
        """Embed chunks concurrently. Return (written, failed) counts.

        Each chunk is independent: one failure or timeout never holds back
        or cancels the others.
        """
        if not chunks or not self.embeddings_enabled:
            return 0, 0

        written = 0
        failed = 0
        workers = min(self._max_workers, len(chunks))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self.embed_and_index, chunk.id, chunk.text): chunk.id
                for chunk in chunks
            }
            for future in as_completed(futures):
                if future.result():
                    written += 1
                else:
                    failed += 1
        if failed:
            logger.warning(f"{failed} of {len(chunks)} chunks were not embedded")
        return written, failed

    def reindex(self, *, force: bool = False) -> ReindexResult:
        """Embed chunks that have no vector yet, or every chunk when ``force``."""
        chunks = self.storage.list_chunks()
        if not force:
            chunks = [chunk for chunk in chunks if chunk.embedding is None]
        written, failed = self.embed_chunks(chunks)
        logger.info(
            f"Reindex finished: {len(chunks)} candidates, "
            f"{written} embedded, {failed} failed"
        )
        return ReindexResult(
            candidates=len(chunks),
            embeddings_written=written,
            embeddings_failed=failed,
        )
