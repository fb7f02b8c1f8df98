"""
Ranking helpers for single-mode result sets.
"""

from __future__ import annotations

from ..storage import ChunkRecord


def rank_scored(
    scored: list[tuple[ChunkRecord, float]], *, limit: int
) -> list[tuple[ChunkRecord, float]]:
    """Sort (chunk, score) pairs by score, earlier insertion first on ties."""
    if limit < 1:
        return []
    ordered = sorted(scored, key=lambda item: (-item[1], item[0].seq, item[0].id))
    return ordered[:limit]


def best_per_document(
    ranked: list[tuple[ChunkRecord, float]],
) -> list[tuple[ChunkRecord, float]]:
    """Keep the first (best ranked) chunk of each document, preserving order."""
    seen: set[str] = set()
    collapsed: list[tuple[ChunkRecord, float]] = []
    for record, score in ranked:
        if record.doc_id in seen:
            continue
        seen.add(record.doc_id)
        collapsed.append((record, score))
    return collapsed
