"""Data models for retrieval operations."""

from __future__ import annotations

from dataclasses import dataclass

UNKNOWN_FILENAME = "Unknown file"


@dataclass(frozen=True)
class RetrievedChunk:
    """A stored chunk matched for a query, annotated with its document's filename."""

    id: str
    document_id: str
    filename: str
    content: str
    page_number: int
    chunk_index: int
    similarity: float
