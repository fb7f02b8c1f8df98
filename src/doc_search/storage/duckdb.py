"""
DuckDB storage backend for documents, chunks and chunk vectors.
"""

from __future__ import annotations

import math
import threading
from dataclasses import replace
from pathlib import Path
from typing import Any

import duckdb
from loguru import logger

from .base import ChunkRecord, DocumentRecord, EmbeddingVector

IN_MEMORY = ":memory:"


def _coerce_vector(chunk_id: str, raw: Any) -> EmbeddingVector | None:
    """Turn a stored LIST value into a vector; corrupt values read as absent."""
    if raw is None:
        return None
    try:
        vector = tuple(float(value) for value in raw)
    except (TypeError, ValueError):
        logger.warning(f"Discarding corrupt vector for chunk {chunk_id}")
        return None
    if not vector or not all(math.isfinite(value) for value in vector):
        logger.warning(f"Discarding corrupt vector for chunk {chunk_id}")
        return None
    return vector


class DuckDBStorage:
    """DuckDB-backed persistence for documents, chunks and embeddings.

    A single connection is shared by every caller; access is serialized with
    a re-entrant lock so embedding workers can write vectors while queries
    read committed rows.
    """

    def __init__(
        self,
        db_path: str,
        *,
        read_only: bool = False,
        initialize: bool = True,
    ) -> None:
        if db_path == IN_MEMORY:
            self.db_path = IN_MEMORY
        else:
            self.db_path = str(Path(db_path).expanduser().resolve())
            Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)
        self.read_only = read_only
        self._lock = threading.RLock()
        self._conn = duckdb.connect(self.db_path, read_only=read_only)
        if initialize and not read_only:
            self.initialize()

    def close(self) -> None:
        """Close the underlying DuckDB connection."""
        with self._lock:
            self._conn.close()

    def initialize(self) -> None:
        with self._lock:
            self._conn.execute("CREATE SEQUENCE IF NOT EXISTS chunk_seq START 1;")
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS documents (
                    id VARCHAR PRIMARY KEY,
                    filename VARCHAR NOT NULL,
                    content VARCHAR NOT NULL,
                    created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
                );
                """
            )
            # No FK to documents: DuckDB rejects updates on referenced rows,
            # so deletes cascade in delete_document instead.
            self._conn.execute(
                """
                CREATE TABLE IF NOT EXISTS chunks (
                    id VARCHAR PRIMARY KEY,
                    doc_id VARCHAR NOT NULL,
                    position INTEGER NOT NULL,
                    text VARCHAR NOT NULL,
                    seq BIGINT NOT NULL DEFAULT nextval('chunk_seq'),
                    embedding DOUBLE[],
                    embedded_at TIMESTAMP
                );
                """
            )

    def store_document(
        self, document: DocumentRecord, chunks: list[ChunkRecord]
    ) -> list[ChunkRecord]:
        with self._lock:
            self._conn.begin()
            try:
                self._conn.execute(
                    "INSERT INTO documents (id, filename, content) VALUES (?, ?, ?)",
                    [document.id, document.filename, document.content],
                )
                if chunks:
                    self._conn.executemany(
                        """
                        INSERT INTO chunks (id, doc_id, position, text, embedding)
                        VALUES (?, ?, ?, ?, ?)
                        """,
                        [
                            (
                                chunk.id,
                                chunk.doc_id,
                                chunk.position,
                                chunk.text,
                                list(chunk.embedding) if chunk.embedding else None,
                            )
                            for chunk in chunks
                        ],
                    )
                rows = self._conn.execute(
                    "SELECT id, seq FROM chunks WHERE doc_id = ?",
                    [document.id],
                ).fetchall()
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise

        seq_by_id = {str(row[0]): int(row[1]) for row in rows}
        return [replace(chunk, seq=seq_by_id[chunk.id]) for chunk in chunks]

    def list_chunks(self, *, only_embedded: bool = False) -> list[ChunkRecord]:
        sql = "SELECT id, doc_id, position, text, seq, embedding FROM chunks"
        if only_embedded:
            sql += " WHERE embedding IS NOT NULL"
        sql += " ORDER BY seq ASC"
        with self._lock:
            rows = self._conn.execute(sql).fetchall()
        return [self._row_to_chunk_record(row) for row in rows]

    def get_chunk(self, chunk_id: str) -> ChunkRecord | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT id, doc_id, position, text, seq, embedding
                FROM chunks
                WHERE id = ?
                LIMIT 1
                """,
                [chunk_id],
            ).fetchone()
        if row is None:
            return None
        return self._row_to_chunk_record(row)

    def get_vector(self, chunk_id: str) -> EmbeddingVector | None:
        with self._lock:
            row = self._conn.execute(
                "SELECT embedding FROM chunks WHERE id = ? LIMIT 1",
                [chunk_id],
            ).fetchone()
        if row is None:
            return None
        return _coerce_vector(chunk_id, row[0])

    def put_vector(self, chunk_id: str, vector: EmbeddingVector) -> bool:
        with self._lock:
            exists = self._conn.execute(
                "SELECT 1 FROM chunks WHERE id = ? LIMIT 1",
                [chunk_id],
            ).fetchone()
            if exists is None:
                return False
            self._conn.execute(
                """
                UPDATE chunks
                SET embedding = ?, embedded_at = now()
                WHERE id = ?
                """,
                [[float(value) for value in vector], chunk_id],
            )
        return True

    def get_document(self, doc_id: str) -> DocumentRecord | None:
        with self._lock:
            row = self._conn.execute(
                """
                SELECT id, filename, content, created_at
                FROM documents
                WHERE id = ?
                LIMIT 1
                """,
                [doc_id],
            ).fetchone()
        if row is None:
            return None
        return DocumentRecord(
            id=str(row[0]),
            filename=str(row[1]),
            content=str(row[2]),
            created_at=str(row[3]),
        )

    def get_documents(self, doc_ids: list[str]) -> dict[str, DocumentRecord]:
        """Fetch several documents at once, keyed by id."""
        if not doc_ids:
            return {}
        unique_ids = sorted(set(doc_ids))
        placeholders = ", ".join(["?"] * len(unique_ids))
        with self._lock:
            rows = self._conn.execute(
                f"""
                SELECT id, filename, content, created_at
                FROM documents
                WHERE id IN ({placeholders})
                """,
                unique_ids,
            ).fetchall()
        return {
            str(row[0]): DocumentRecord(
                id=str(row[0]),
                filename=str(row[1]),
                content=str(row[2]),
                created_at=str(row[3]),
            )
            for row in rows
        }

    def list_documents(self) -> list[dict[str, Any]]:
        with self._lock:
            rows = self._conn.execute(
                """
                SELECT
                    d.id,
                    d.filename,
                    length(d.content) AS content_length,
                    d.created_at,
                    (SELECT COUNT(*) FROM chunks c WHERE c.doc_id = d.id) AS chunks_count,
                    (
                        SELECT COUNT(*)
                        FROM chunks c
                        WHERE c.doc_id = d.id AND c.embedding IS NOT NULL
                    ) AS embedded_count
                FROM documents d
                ORDER BY d.created_at DESC, d.filename ASC
                """
            ).fetchall()
        results: list[dict[str, Any]] = []
        for row in rows:
            results.append(
                {
                    "id": str(row[0]),
                    "filename": str(row[1]),
                    "content_length": int(row[2]),
                    "created_at": str(row[3]),
                    "chunks_count": int(row[4]),
                    "embedded_count": int(row[5]),
                }
            )
        return results

    def delete_document(self, doc_id: str) -> bool:
        with self._lock:
            exists = self._conn.execute(
                "SELECT 1 FROM documents WHERE id = ? LIMIT 1",
                [doc_id],
            ).fetchone()
            if exists is None:
                return False
            self._conn.begin()
            try:
                self._conn.execute("DELETE FROM chunks WHERE doc_id = ?", [doc_id])
                self._conn.execute("DELETE FROM documents WHERE id = ?", [doc_id])
                self._conn.commit()
            except Exception:
                self._conn.rollback()
                raise
        return True

    def count_chunks(self) -> int:
        with self._lock:
            row = self._conn.execute("SELECT COUNT(*) FROM chunks").fetchone()
        return int(row[0]) if row else 0

    def has_embeddings(self) -> bool:
        with self._lock:
            row = self._conn.execute(
                "SELECT COUNT(*) FROM chunks WHERE embedding IS NOT NULL"
            ).fetchone()
        return bool(row and int(row[0]) > 0)

    def get_stats(self) -> dict[str, Any]:
        with self._lock:
            doc_row = self._conn.execute(
                "SELECT COUNT(*), coalesce(SUM(length(content)), 0) FROM documents"
            ).fetchone()
            chunk_row = self._conn.execute(
                """
                SELECT
                    COUNT(*),
                    COUNT(*) FILTER (WHERE embedding IS NOT NULL)
                FROM chunks
                """
            ).fetchone()
        documents = int(doc_row[0]) if doc_row else 0
        total_text_length = int(doc_row[1]) if doc_row else 0
        chunks = int(chunk_row[0]) if chunk_row else 0
        embedded = int(chunk_row[1]) if chunk_row else 0
        return {
            "documents": documents,
            "chunks": chunks,
            "embedded_chunks": embedded,
            "total_text_length": total_text_length,
            "avg_chunks_per_document": round(chunks / documents) if documents else 0,
        }

    @staticmethod
    def _row_to_chunk_record(row: tuple[Any, ...]) -> ChunkRecord:
        chunk_id = str(row[0])
        return ChunkRecord(
            id=chunk_id,
            doc_id=str(row[1]),
            position=int(row[2]),
            text=str(row[3]),
            seq=int(row[4]),
            embedding=_coerce_vector(chunk_id, row[5]),
        )
