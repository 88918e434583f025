"""Abstract base class for vector stores."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Sequence

from docchat.vectorstore.schemas import ChunkRecord, SearchHit


class VectorStore(ABC):
    """Interface for vector store backends.

    Similarity is cosine similarity between the stored chunk embedding and the
    query embedding. Every search is scoped to a single owner.
    """

    @abstractmethod
    def insert(self, records: list[ChunkRecord]) -> int:
        """Insert one batch of chunk records.

        The batch is written atomically: either every record becomes
        searchable or none does.

        Returns:
            Number of records inserted.
        """

    @abstractmethod
    def search(
        self,
        owner_id: str,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchHit]:
        """Search an owner's chunks for those similar to ``query_embedding``.

        Args:
            owner_id: Only chunks belonging to this owner are considered.
            query_embedding: The query vector.
            match_threshold: Minimum similarity for a chunk to be returned.
            match_count: Maximum number of hits.
            document_ids: Restrict the search to these documents. ``None`` or
                an empty sequence searches all of the owner's documents.

        Returns:
            Hits sorted by similarity, highest first.
        """

    @abstractmethod
    def delete_document(self, owner_id: str, document_id: str) -> int:
        """Delete every chunk of one document.

        Returns:
            Number of chunks deleted.
        """

    @abstractmethod
    def delete_chunks(self, owner_id: str, chunk_ids: Sequence[str]) -> int:
        """Delete specific chunks of one owner by chunk id.

        Ids that are unknown or belong to another owner are skipped.

        Returns:
            Number of chunks deleted.
        """

    @abstractmethod
    def count(self, owner_id: str | None = None) -> int:
        """Return the number of stored chunks, optionally for one owner."""
