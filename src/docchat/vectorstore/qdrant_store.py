"""Qdrant vector store — production-grade with native payload filtering.

Requires the ``qdrant`` extra. Supports Qdrant Cloud, a local server, an
on-disk embedded store, and an in-memory store for tests.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from docchat.vectorstore.base import VectorStore
from docchat.vectorstore.schemas import ChunkRecord, SearchHit

logger = logging.getLogger(__name__)


class QdrantStore(VectorStore):
    """Qdrant-backed vector store."""

    def __init__(
        self,
        collection_name: str = "document_chunks",
        dimension: int = 768,
        url: str | None = None,
        api_key: str | None = None,
        path: str | None = None,
    ):
        try:
            from qdrant_client import QdrantClient, models
        except ImportError as exc:
            raise ImportError(
                "qdrant-client required: pip install docchat-rag[qdrant]"
            ) from exc

        self._models = models
        self._collection_name = collection_name
        self._dimension = dimension

        # Connect to Qdrant
        if url:
            self._client = QdrantClient(url=url, api_key=api_key)
        elif path:
            self._client = QdrantClient(path=path)
        else:
            # In-memory for testing
            self._client = QdrantClient(":memory:")

        # Ensure collection exists
        if not self._client.collection_exists(collection_name):
            self._client.create_collection(
                collection_name=collection_name,
                vectors_config=models.VectorParams(
                    size=dimension,
                    distance=models.Distance.COSINE,
                ),
            )
            logger.info("Created Qdrant collection '%s' (dim=%d)", collection_name, dimension)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def insert(self, records: list[ChunkRecord]) -> int:
        if not records:
            return 0

        points = [
            self._models.PointStruct(
                id=record.id,
                vector=record.embedding,
                payload={
                    "document_id": record.document_id,
                    "owner_id": record.owner_id,
                    "content": record.content,
                    "page_number": record.page_number,
                    "chunk_index": record.chunk_index,
                },
            )
            for record in records
        ]

        # A single upsert call is applied as one operation by Qdrant.
        self._client.upsert(
            collection_name=self._collection_name,
            points=points,
            wait=True,
        )

        logger.info("QdrantStore added %d records", len(records))
        return len(records)

    def search(
        self,
        owner_id: str,
        query_embedding: list[float],
        match_threshold: float,
        match_count: int,
        document_ids: Sequence[str] | None = None,
    ) -> list[SearchHit]:
        if match_count <= 0:
            return []

        response = self._client.query_points(
            collection_name=self._collection_name,
            query=query_embedding,
            limit=match_count,
            query_filter=self._filter(owner_id, document_ids),
            score_threshold=match_threshold,
            with_payload=True,
        )

        hits: list[SearchHit] = []
        for point in response.points:
            payload = point.payload or {}
            hits.append(SearchHit(
                id=str(point.id),
                document_id=payload["document_id"],
                owner_id=payload["owner_id"],
                content=payload.get("content", ""),
                page_number=int(payload["page_number"]),
                chunk_index=int(payload["chunk_index"]),
                similarity=max(0.0, min(float(point.score or 0.0), 1.0)),
            ))
        return hits

    def delete_document(self, owner_id: str, document_id: str) -> int:
        doc_filter = self._filter(owner_id, [document_id])
        existing = self._client.count(
            collection_name=self._collection_name,
            count_filter=doc_filter,
            exact=True,
        ).count
        if existing:
            self._client.delete(
                collection_name=self._collection_name,
                points_selector=self._models.FilterSelector(filter=doc_filter),
                wait=True,
            )
        return existing

    def delete_chunks(self, owner_id: str, chunk_ids: Sequence[str]) -> int:
        if not chunk_ids:
            return 0
        points = self._client.retrieve(
            collection_name=self._collection_name,
            ids=list(chunk_ids),
            with_payload=True,
        )
        owned = [p.id for p in points if (p.payload or {}).get("owner_id") == owner_id]
        if owned:
            self._client.delete(
                collection_name=self._collection_name,
                points_selector=self._models.PointIdsList(points=owned),
                wait=True,
            )
        return len(owned)

    def count(self, owner_id: str | None = None) -> int:
        count_filter = self._filter(owner_id) if owner_id is not None else None
        return self._client.count(
            collection_name=self._collection_name,
            count_filter=count_filter,
            exact=True,
        ).count

    # ------------------------------------------------------------------
    # Filters
    # ------------------------------------------------------------------

    def _filter(self, owner_id: str, document_ids: Sequence[str] | None = None) -> Any:
        conditions = [
            self._models.FieldCondition(
                key="owner_id",
                match=self._models.MatchValue(value=owner_id),
            )
        ]
        if document_ids:
            conditions.append(
                self._models.FieldCondition(
                    key="document_id",
                    match=self._models.MatchAny(any=list(document_ids)),
                )
            )
        return self._models.Filter(must=conditions)
