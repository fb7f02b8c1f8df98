"""
Cosine similarity and the chunk vector index.
"""

from __future__ import annotations

import math
from typing import Sequence

from loguru import logger

from ..storage import ChunkRecord, EmbeddingVector, StorageBackend
from .ranker import rank_scored

DEFAULT_MIN_SIMILARITY = 0.1


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors.

    Returns 0.0 for empty or all-zero vectors, mismatched dimensions and
    non-finite components; otherwise a value clamped to [-1, 1].
    """
    if len(a) != len(b) or not a:
        return 0.0

    dot = 0.0
    norm_a = 0.0
    norm_b = 0.0
    for x, y in zip(a, b):
        dot += x * y
        norm_a += x * x
        norm_b += y * y

    if not (math.isfinite(dot) and math.isfinite(norm_a) and math.isfinite(norm_b)):
        return 0.0
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    similarity = dot / (math.sqrt(norm_a) * math.sqrt(norm_b))
    return max(-1.0, min(1.0, similarity))


def _is_zero(vector: Sequence[float]) -> bool:
    return all(value == 0.0 for value in vector)


def is_valid_vector(vector: Sequence[float] | None) -> bool:
    if vector is None or len(vector) == 0:
        return False
    try:
        return all(math.isfinite(float(value)) for value in vector)
    except (TypeError, ValueError):
        return False


class SimilarityIndex:
    """Nearest-neighbour lookup over chunk vectors held in storage.

    Only chunks with a stored vector take part, so a partially embedded
    corpus is searchable. All-zero vectors never match, and only scores
    strictly above ``min_similarity`` are ranked.
    """

    def __init__(
        self,
        storage: StorageBackend,
        *,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
    ) -> None:
        if not -1.0 <= min_similarity <= 1.0:
            raise ValueError("min_similarity must be within [-1, 1]")
        self.storage = storage
        self.min_similarity = min_similarity

    def upsert(self, chunk_id: str, vector: Sequence[float]) -> bool:
        """Store or replace the vector for a chunk."""
        if not is_valid_vector(vector):
            logger.warning(f"Refusing invalid vector for chunk {chunk_id}")
            return False
        stored: EmbeddingVector = tuple(float(value) for value in vector)
        written = self.storage.put_vector(chunk_id, stored)
        if not written:
            logger.warning(f"Cannot store vector for unknown chunk {chunk_id}")
        return written

    def query(self, query_vector: Sequence[float], k: int) -> list[tuple[str, float]]:
        """Return up to ``k`` (chunk_id, score) pairs by descending similarity."""
        return [
            (record.id, score) for record, score in self.query_records(query_vector, k)
        ]

    def query_records(
        self, query_vector: Sequence[float], k: int
    ) -> list[tuple[ChunkRecord, float]]:
        if k < 1 or not is_valid_vector(query_vector) or _is_zero(query_vector):
            return []

        dim = len(query_vector)
        scored: list[tuple[ChunkRecord, float]] = []
        mismatched = 0
        for record in self.storage.list_chunks(only_embedded=True):
            if record.embedding is None:
                continue
            if len(record.embedding) != dim:
                mismatched += 1
                continue
            if _is_zero(record.embedding):
                continue
            score = cosine_similarity(query_vector, record.embedding)
            if score > self.min_similarity:
                scored.append((record, score))

        if mismatched:
            logger.warning(
                f"Skipped {mismatched} chunk vectors with dimension != {dim}"
            )
        return rank_scored(scored, limit=k)
