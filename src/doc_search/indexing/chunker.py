"""
Chunking utilities for indexing document content.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

_LINE_ENDINGS = re.compile(r"\r\n?")
_WHITESPACE = re.compile(r"\s+")
# Sentence-final punctuation, optionally followed by closing quotes/brackets.
_SENTENCE_END = re.compile(r"[.!?][\"'\)\]”’]*$")


def normalize_text(text: str) -> str:
    """Normalize line endings and collapse whitespace runs to single spaces."""
    unified = _LINE_ENDINGS.sub("\n", text)
    return _WHITESPACE.sub(" ", unified).strip()


@dataclass(frozen=True)
class TextChunk:
    """A content chunk with word and character offsets into the normalized text."""

    text: str
    position: int
    start_word: int
    end_word: int
    start_char: int
    end_char: int

    @property
    def word_count(self) -> int:
        return self.end_word - self.start_word


class SmartChunker:
    """
    Sentence-aware chunker with overlap.

    Sizes are counted in words. A window is cut after the last sentence end
    found within ``sentence_window`` words of its limit, otherwise at the
    limit itself; cuts always fall between words.
    """

    def __init__(
        self,
        chunk_size: int = 200,
        overlap: int = 20,
        sentence_window: int | None = None,
    ) -> None:
        if chunk_size <= 0:
            raise ValueError("chunk_size must be > 0")
        if overlap < 0:
            raise ValueError("overlap must be >= 0")
        if overlap >= chunk_size:
            raise ValueError("overlap must be smaller than chunk_size")
        if sentence_window is not None and sentence_window < 0:
            raise ValueError("sentence_window must be >= 0")

        self.chunk_size = chunk_size
        self.overlap = overlap
        self.sentence_window = (
            sentence_window if sentence_window is not None else max(1, chunk_size // 4)
        )

    def chunk_text(self, text: str) -> list[TextChunk]:
        """
        Split text into overlapping chunks while preferring sentence boundaries.
        """
        normalized = normalize_text(text)
        if not normalized:
            return []

        words = normalized.split(" ")
        offsets = self._word_offsets(words)
        total = len(words)

        if total <= self.chunk_size:
            return [
                TextChunk(
                    text=normalized,
                    position=0,
                    start_word=0,
                    end_word=total,
                    start_char=0,
                    end_char=len(normalized),
                )
            ]

        chunks: list[TextChunk] = []
        start = 0
        position = 0

        while start < total:
            end = min(start + self.chunk_size, total)
            if end < total:
                end = self._sentence_cut(words, start, end)

            start_char = offsets[start]
            end_char = offsets[end - 1] + len(words[end - 1])
            chunks.append(
                TextChunk(
                    text=normalized[start_char:end_char],
                    position=position,
                    start_word=start,
                    end_word=end,
                    start_char=start_char,
                    end_char=end_char,
                )
            )
            position += 1

            if end >= total:
                break
            start = max(end - self.overlap, start + 1)

        return chunks

    def _sentence_cut(self, words: list[str], start: int, end: int) -> int:
        # Cuts must leave room for the overlap so the next window advances.
        floor = max(start + self.overlap, end - self.sentence_window, start)
        for cut in range(end, floor, -1):
            if _SENTENCE_END.search(words[cut - 1]):
                return cut
        return end

    @staticmethod
    def _word_offsets(words: list[str]) -> list[int]:
        offsets: list[int] = []
        cursor = 0
        for word in words:
            offsets.append(cursor)
            cursor += len(word) + 1
        return offsets


def merge_chunks(chunks: list[TextChunk]) -> str:
    """Rebuild the normalized source text from chunks, dropping shared words."""
    words: list[str] = []
    covered = 0
    for chunk in chunks:
        chunk_words = chunk.text.split(" ")
        skip = max(covered - chunk.start_word, 0)
        words.extend(chunk_words[skip:])
        covered = max(covered, chunk.end_word)
    return " ".join(words)


def chunk(text: str, target_size: int, overlap: int) -> list[str]:
    """Split text into ordered chunk strings of at most ``target_size`` words."""
    chunker = SmartChunker(chunk_size=target_size, overlap=overlap)
    return [item.text for item in chunker.chunk_text(text)]
