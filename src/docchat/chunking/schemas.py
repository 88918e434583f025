"""Data models for chunks."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PageChunk:
    """A chunk of one page, positioned within its document."""

    content: str
    page_number: int
    chunk_index: int
