"""
Deterministic lexical relevance scoring used when vectors are unavailable.

A chunk's score is built from four parts:

1. a fixed bonus when the query's words appear in order as whole words
   (case-insensitive);
2. the whole-word occurrence count of every query token longer than two
   characters;
3. a smaller fixed bonus for every occurrence of an adjacent query-token
   pair;
4. the sum divided by the square root of the chunk's word count, so long
   chunks do not win on volume alone.

A score of zero means "no evidence of relevance" and is never ranked.
"""

from __future__ import annotations

import math
import re
from functools import lru_cache

from ..storage import ChunkRecord
from .ranker import rank_scored

PHRASE_BONUS = 10.0
BIGRAM_BONUS = 2.0

_TOKEN = re.compile(r"\w+(?:['’]\w+)*")
_WHITESPACE = re.compile(r"\s+")


def tokenize(text: str) -> list[str]:
    """Lower-cased word tokens of ``text``."""
    return _TOKEN.findall(text.lower())


@lru_cache(maxsize=1024)
def _word_pattern(*words: str) -> re.Pattern[str]:
    body = r"\s+".join(re.escape(word) for word in words)
    return re.compile(rf"(?<!\w){body}(?!\w)")


class LexicalScorer:
    """Score chunks against a query by word overlap, phrases and proximity."""

    def __init__(
        self,
        *,
        phrase_bonus: float = PHRASE_BONUS,
        bigram_bonus: float = BIGRAM_BONUS,
        min_token_length: int = 3,
    ) -> None:
        if phrase_bonus < 0 or bigram_bonus < 0:
            raise ValueError("bonuses must be >= 0")
        self.phrase_bonus = phrase_bonus
        self.bigram_bonus = bigram_bonus
        self.min_token_length = min_token_length

    def score(self, query: str, text: str) -> float:
        """Return a non-negative relevance score of ``text`` for ``query``."""
        haystack = _WHITESPACE.sub(" ", text.lower()).strip()
        word_count = len(haystack.split())
        if word_count == 0 or not query.strip():
            return 0.0

        tokens = tokenize(query)
        raw = 0.0
        if tokens and _word_pattern(*tokens).search(haystack):
            raw += self.phrase_bonus

        for token in tokens:
            if len(token) >= self.min_token_length:
                raw += len(_word_pattern(token).findall(haystack))

        for first, second in zip(tokens, tokens[1:]):
            occurrences = len(_word_pattern(first, second).findall(haystack))
            raw += self.bigram_bonus * occurrences

        return raw / math.sqrt(word_count)

    def rank(
        self,
        query: str,
        chunks: list[ChunkRecord],
        *,
        limit: int,
    ) -> list[tuple[ChunkRecord, float]]:
        """Score every chunk, drop zero scores and return the top ``limit``."""
        scored: list[tuple[ChunkRecord, float]] = []
        for record in chunks:
            value = self.score(query, record.text)
            if value > 0:
                scored.append((record, value))
        return rank_scored(scored, limit=limit)
