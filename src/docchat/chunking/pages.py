"""Chunk a parsed document page by page, numbering chunks across the document."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from docchat.chunking.base import BaseChunker
from docchat.chunking.schemas import PageChunk
from docchat.documents.schemas import ParsedPage

logger = logging.getLogger(__name__)

MIN_PAGE_CHARS = 30


def chunk_pages(
    pages: Iterable[ParsedPage],
    chunker: BaseChunker,
    min_page_chars: int = MIN_PAGE_CHARS,
) -> list[PageChunk]:
    """Chunk each page in order.

    Pages shorter than ``min_page_chars`` (after trimming) are skipped. A
    page long enough to keep but for which the chunker returns nothing is
    kept whole as a single chunk.
    """
    chunks: list[PageChunk] = []
    skipped = 0

    for page in pages:
        text = page.text.strip()
        if len(text) < min_page_chars:
            skipped += 1
            continue

        pieces = chunker.split_text(text) or [text]
        for piece in pieces:
            chunks.append(PageChunk(
                content=piece,
                page_number=page.page_number,
                chunk_index=len(chunks),
            ))

    if skipped:
        logger.info("Skipped %d pages shorter than %d characters", skipped, min_page_chars)
    return chunks
