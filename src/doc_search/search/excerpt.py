"""Excerpt extraction around the first query match."""

from __future__ import annotations

ELLIPSIS = "..."
DEFAULT_EXCERPT_LENGTH = 200


def build_excerpt(
    text: str,
    query: str,
    max_length: int = DEFAULT_EXCERPT_LENGTH,
    *,
    marker: str = ELLIPSIS,
) -> str:
    """Return a window of at most ``max_length`` characters around the query.

    The window starts half a window before the first case-insensitive match
    and is clipped to the text; ``marker`` is added on each side that was
    cut. Without a match the head of the text is returned.
    """
    if max_length <= 0 or not text:
        return ""

    needle = query.strip().lower()
    index = text.lower().find(needle) if needle else -1

    if index == -1:
        head = text[:max_length]
        return head + marker if len(text) > max_length else head

    start = max(0, index - max_length // 2)
    end = min(len(text), start + max_length)
    excerpt = text[start:end]
    if start > 0:
        excerpt = marker + excerpt
    if end < len(text):
        excerpt = excerpt + marker
    return excerpt
