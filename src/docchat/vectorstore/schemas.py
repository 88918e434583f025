"""Data models for vector store operations."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class ChunkRecord:
    """A document chunk with its embedding, ready for storage.

    ``owner_id`` is denormalized from the owning document so searches can be
    scoped to one owner without a join.
    """

    id: str
    document_id: str
    owner_id: str
    content: str
    page_number: int
    chunk_index: int
    embedding: list[float] = field(repr=False, default_factory=list)


@dataclass(frozen=True)
class SearchHit:
    """A stored chunk matched by a similarity search."""

    id: str
    document_id: str
    owner_id: str
    content: str
    page_number: int
    chunk_index: int
    similarity: float
