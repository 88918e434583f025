"""Source derivation — deduplicate retrieved chunks into user-facing citations."""

from __future__ import annotations

from collections.abc import Sequence

from docchat.pipeline.schemas import Source
from docchat.retrieval.schemas import RetrievedChunk

MAX_SOURCES = 6
EXCERPT_CHARS = 150


def build_sources(
    chunks: Sequence[RetrievedChunk],
    max_sources: int = MAX_SOURCES,
    excerpt_chars: int = EXCERPT_CHARS,
) -> list[Source]:
    """Collapse chunks to one ``Source`` per (filename, page).

    Each key keeps the chunk with the highest similarity. Sources are sorted
    by similarity, highest first, and capped at ``max_sources``.

    Args:
        chunks: Retrieved chunks, any order.
        max_sources: Maximum number of sources returned.
        excerpt_chars: Characters of chunk content kept in the excerpt.

    Returns:
        List of ``Source`` with similarity rounded to two decimals.
    """
    best: dict[tuple[str, int], RetrievedChunk] = {}
    for chunk in chunks:
        key = (chunk.filename, chunk.page_number)
        current = best.get(key)
        if current is None or chunk.similarity > current.similarity:
            best[key] = chunk

    ranked = sorted(best.values(), key=lambda c: c.similarity, reverse=True)

    return [
        Source(
            filename=c.filename,
            page_number=c.page_number,
            excerpt=c.content[:excerpt_chars] + "...",
            similarity=round(c.similarity, 2),
        )
        for c in ranked[:max_sources]
    ]


def format_sources(sources: Sequence[Source]) -> str:
    """Format sources as a markdown block for display."""
    if not sources:
        return ""

    lines = ["\n---\n**Sources:**"]
    for s in sources:
        lines.append(f'- "{s.filename}", Page {s.page_number} ({s.similarity:.2f})')
    return "\n".join(lines)
