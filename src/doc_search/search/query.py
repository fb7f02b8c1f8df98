"""
Query orchestration: semantic search with lexical fallback.

Each query is served end-to-end by exactly one mode. Cosine similarities
and lexical scores live on different scales, so the two are never mixed in
one result list.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, TypeAlias

from loguru import logger

from ..embeddings import SupportsEmbedding
from ..storage import ChunkRecord, DocumentRecord, EmbeddingVector, StorageBackend
from .excerpt import DEFAULT_EXCERPT_LENGTH, build_excerpt
from .lexical import LexicalScorer
from .ranker import best_per_document
from .similarity import DEFAULT_MIN_SIMILARITY, SimilarityIndex

SearchMode: TypeAlias = Literal["semantic", "lexical", "none"]
PlanReason: TypeAlias = Literal[
    "semantic",
    "no_provider",
    "embedding_failed",
    "below_threshold",
    "invalid_query",
]

DEFAULT_LIMIT = 10
MIN_QUERY_LENGTH = 2


@dataclass(frozen=True)
class SearchResult:
    """Ranked passage returned for a query."""

    chunk_id: str
    doc_id: str
    filename: str
    chunk_index: int
    text: str
    score: float
    excerpt: str
    mode: SearchMode


@dataclass(frozen=True)
class SearchPlan:
    """Which path served a query, why, and the ranked chunks it produced."""

    mode: SearchMode
    reason: PlanReason
    ranked: list[tuple[ChunkRecord, float]]


@dataclass(frozen=True)
class SearchResponse:
    """Results of one query together with the mode that produced them."""

    mode: SearchMode
    reason: PlanReason
    results: list[SearchResult]


def is_searchable(query: str) -> bool:
    """Queries need at least two non-whitespace characters."""
    return len("".join(query.split())) >= MIN_QUERY_LENGTH


class HybridQueryEngine:
    """Serve queries from the vector index, falling back to lexical scoring."""

    def __init__(
        self,
        storage: StorageBackend,
        embedding_provider: SupportsEmbedding | None = None,
        *,
        min_similarity: float = DEFAULT_MIN_SIMILARITY,
        excerpt_length: int = DEFAULT_EXCERPT_LENGTH,
        scorer: LexicalScorer | None = None,
    ) -> None:
        self.storage = storage
        self.embedding_provider = embedding_provider
        self.index = SimilarityIndex(storage, min_similarity=min_similarity)
        self.scorer = scorer or LexicalScorer()
        self.excerpt_length = excerpt_length

    @property
    def semantic_enabled(self) -> bool:
        provider = self.embedding_provider
        return provider is not None and bool(getattr(provider, "available", True))

    def search(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        *,
        per_document: bool = False,
    ) -> list[SearchResult]:
        """Return at most ``limit`` results for ``query``, all from one mode."""
        return self.execute(query, limit, per_document=per_document).results

    def execute(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        *,
        per_document: bool = False,
    ) -> SearchResponse:
        """Run a query and report the serving mode along with the results."""
        plan = self.plan(query, limit, per_document=per_document)
        if not plan.ranked:
            return SearchResponse(mode=plan.mode, reason=plan.reason, results=[])

        documents = self._documents_for(plan.ranked)
        results: list[SearchResult] = []
        for record, score in plan.ranked:
            document = documents.get(record.doc_id)
            results.append(
                SearchResult(
                    chunk_id=record.id,
                    doc_id=record.doc_id,
                    filename=document.filename if document else "",
                    chunk_index=record.position,
                    text=record.text,
                    score=float(score),
                    excerpt=build_excerpt(record.text, query, self.excerpt_length),
                    mode=plan.mode,
                )
            )
        return SearchResponse(mode=plan.mode, reason=plan.reason, results=results)

    def plan(
        self,
        query: str,
        limit: int = DEFAULT_LIMIT,
        *,
        per_document: bool = False,
    ) -> SearchPlan:
        """Decide the serving mode for ``query`` and rank candidates with it."""
        if limit < 1 or not is_searchable(query):
            return SearchPlan(mode="none", reason="invalid_query", ranked=[])

        # Collapsing to one chunk per document needs a deeper candidate pool.
        pool = limit * 4 if per_document else limit

        reason: PlanReason = "no_provider"
        if self.semantic_enabled:
            query_vector = self._embed_query(query)
            if query_vector is None:
                reason = "embedding_failed"
            else:
                ranked = self.index.query_records(query_vector, pool)
                if ranked:
                    logger.debug(f"Semantic search served {query!r}")
                    return SearchPlan(
                        mode="semantic",
                        reason="semantic",
                        ranked=self._finish(ranked, limit, per_document),
                    )
                reason = "below_threshold"

        logger.debug(f"Lexical search served {query!r} ({reason})")
        ranked = self.scorer.rank(query, self.storage.list_chunks(), limit=pool)
        return SearchPlan(
            mode="lexical",
            reason=reason,
            ranked=self._finish(ranked, limit, per_document),
        )

    def _embed_query(self, query: str) -> EmbeddingVector | None:
        provider = self.embedding_provider
        if provider is None:
            return None
        try:
            return provider.embed_query(query)
        except Exception as exc:
            # Providers report failures as None; anything raised is treated the same.
            logger.warning(f"Query embedding raised: {exc}")
            return None

    def _documents_for(
        self, ranked: list[tuple[ChunkRecord, float]]
    ) -> dict[str, DocumentRecord]:
        return self.storage.get_documents([record.doc_id for record, _ in ranked])

    @staticmethod
    def _finish(
        ranked: list[tuple[ChunkRecord, float]],
        limit: int,
        per_document: bool,
    ) -> list[tuple[ChunkRecord, float]]:
        if per_document:
            ranked = best_per_document(ranked)
        return ranked[:limit]
