"""Retriever — embed query, search vector store, resolve filenames."""

from __future__ import annotations

import logging
from collections.abc import Sequence

from docchat.documents.repository import DocumentRepository
from docchat.embeddings.client import EmbeddingClient
from docchat.errors import DocumentStoreFailure, VectorStoreFailure
from docchat.retrieval.schemas import UNKNOWN_FILENAME, RetrievedChunk
from docchat.vectorstore.base import VectorStore

logger = logging.getLogger(__name__)

DEFAULT_TOP_K = 8
DEFAULT_THRESHOLD = 0.3


class Retriever:
    """Orchestrates query embedding → owner-scoped search → filename lookup.

    Ranking is plain similarity order as returned by the vector store.
    """

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        documents: DocumentRepository,
        top_k: int = DEFAULT_TOP_K,
        threshold: float = DEFAULT_THRESHOLD,
    ):
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.documents = documents
        self.top_k = top_k
        self.threshold = threshold

    def retrieve(
        self,
        owner_id: str,
        query: str,
        document_ids: Sequence[str] | None = None,
        top_k: int | None = None,
        threshold: float | None = None,
    ) -> list[RetrievedChunk]:
        """Find the owner's chunks most similar to ``query``.

        Args:
            owner_id: Whose documents to search.
            query: The question text.
            document_ids: Optional restriction to these documents; empty
                means no restriction.
            top_k: Maximum chunks to return (defaults to the instance value).
            threshold: Minimum similarity (defaults to the instance value).

        Returns:
            Chunks in descending similarity order. Empty when nothing clears
            the threshold.

        Raises:
            EmbeddingUnavailable: The query could not be embedded.
            VectorStoreFailure: The search itself failed.
            DocumentStoreFailure: Filenames for the hits could not be read.
        """
        top_k = self.top_k if top_k is None else top_k
        threshold = self.threshold if threshold is None else threshold

        # Step 1: Embed the query
        query_embedding = self.embedding_client.embed_query(query)

        # Step 2: Search the vector store
        try:
            hits = self.vector_store.search(
                owner_id=owner_id,
                query_embedding=query_embedding,
                match_threshold=threshold,
                match_count=top_k,
                document_ids=list(document_ids) if document_ids else None,
            )
        except Exception as exc:
            raise VectorStoreFailure(f"Vector search failed: {exc}") from exc

        if not hits:
            logger.info("No chunks above threshold %.2f for owner %s", threshold, owner_id)
            return []

        # Step 3: One batched filename lookup for the distinct documents
        document_ids_hit = {h.document_id for h in hits}
        try:
            filenames = self.documents.filenames(owner_id, document_ids_hit)
        except Exception as exc:
            raise DocumentStoreFailure(f"Document lookup failed: {exc}") from exc
        missing = document_ids_hit - filenames.keys()
        if missing:
            logger.warning("No document record for chunks of %s", ", ".join(sorted(missing)))

        logger.info(
            "Retrieved %d chunks from %d documents (top similarity %.3f)",
            len(hits),
            len(filenames),
            hits[0].similarity,
        )

        return [
            RetrievedChunk(
                id=h.id,
                document_id=h.document_id,
                filename=filenames.get(h.document_id, UNKNOWN_FILENAME),
                content=h.content,
                page_number=h.page_number,
                chunk_index=h.chunk_index,
                similarity=h.similarity,
            )
            for h in hits
        ]
