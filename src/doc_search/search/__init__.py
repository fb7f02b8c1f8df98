"""Search helpers for indexed documents."""

from .excerpt import build_excerpt
from .lexical import LexicalScorer, tokenize
from .query import (
    HybridQueryEngine,
    SearchMode,
    SearchPlan,
    SearchResponse,
    SearchResult,
    is_searchable,
)
from .ranker import best_per_document, rank_scored
from .similarity import SimilarityIndex, cosine_similarity

__all__ = [
    "build_excerpt",
    "LexicalScorer",
    "tokenize",
    "HybridQueryEngine",
    "SearchMode",
    "SearchPlan",
    "SearchResponse",
    "SearchResult",
    "is_searchable",
    "best_per_document",
    "rank_scored",
    "SimilarityIndex",
    "cosine_similarity",
]
