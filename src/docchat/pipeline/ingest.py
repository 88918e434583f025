"""Ingestion pipeline — PDF bytes → parse → chunk → embed → store → ready.

Every document that enters :meth:`IngestPipeline.process` leaves it in a
terminal state: ``ready`` with page/chunk counts, or ``error`` with a message.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from docchat.chunking.base import BaseChunker
from docchat.chunking.pages import MIN_PAGE_CHARS, chunk_pages
from docchat.chunking.recursive_chunker import RecursiveChunker
from docchat.chunking.schemas import PageChunk
from docchat.documents.pdf_parser import PDFParser
from docchat.documents.repository import DocumentRepository
from docchat.documents.schemas import Document, DocumentStatus, Failed
from docchat.embeddings.client import EmbeddingClient
from docchat.errors import (
    DocChatError,
    NoExtractableText,
    StatusTransitionError,
    VectorStoreFailure,
)
from docchat.vectorstore.base import VectorStore
from docchat.vectorstore.schemas import ChunkRecord

logger = logging.getLogger(__name__)

INSERT_BATCH_SIZE = 50
DELETED_DURING_INGESTION = "Document was deleted during processing"


class IngestPipeline:
    """Orchestrates document ingestion: parse → chunk → embed → store → status."""

    def __init__(
        self,
        embedding_client: EmbeddingClient,
        vector_store: VectorStore,
        documents: DocumentRepository,
        parser: PDFParser | None = None,
        chunker: BaseChunker | None = None,
        insert_batch_size: int = INSERT_BATCH_SIZE,
        min_page_chars: int = MIN_PAGE_CHARS,
    ):
        if insert_batch_size < 1:
            raise ValueError("insert_batch_size must be at least 1")
        self.embedding_client = embedding_client
        self.vector_store = vector_store
        self.documents = documents
        self.parser = parser or PDFParser()
        self.chunker = chunker or RecursiveChunker()
        self.insert_batch_size = insert_batch_size
        self.min_page_chars = min_page_chars

    def ingest(
        self,
        owner_id: str,
        filename: str,
        data: bytes,
        storage_path: str = "",
        document_id: str | None = None,
    ) -> Document:
        """Create a ``processing`` document record, then ingest ``data`` into it.

        Returns:
            The document in its terminal state.
        """
        document = self.documents.create(
            owner_id=owner_id,
            filename=filename,
            storage_path=storage_path,
            document_id=document_id,
        )
        return self.process(document, data)

    def process(self, document: Document, data: bytes) -> Document:
        """Run the pipeline for an existing ``processing`` document.

        Failures are recorded on the document rather than raised. If the
        record was deleted or finished elsewhere while this run was embedding,
        the chunks it stored are removed again.

        Returns:
            The document after its ``ready`` or ``error`` transition.
        """
        stored_ids: list[str] = []
        try:
            total_pages = self._run(document, data, stored_ids)
        except DocChatError as exc:
            logger.error("Ingestion of %s (%s) failed: %s", document.id, document.filename, exc)
            return self._settle(document, stored_ids, self.documents.mark_error, str(exc))
        except Exception as exc:
            logger.exception("Unexpected error ingesting %s (%s)", document.id, document.filename)
            return self._settle(
                document,
                stored_ids,
                self.documents.mark_error,
                str(exc) or exc.__class__.__name__,
            )

        ready = self._settle(
            document, stored_ids, self.documents.mark_ready, total_pages, len(stored_ids)
        )
        if ready.status is DocumentStatus.READY:
            logger.info(
                "Document %s ready: %d pages, %d chunks",
                document.id,
                total_pages,
                len(stored_ids),
            )
        return ready

    def fail(self, document: Document, message: str) -> Document:
        """Move a ``processing`` document to ``error`` without running the pipeline."""
        return self._settle(document, [], self.documents.mark_error, message)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _settle(
        self,
        document: Document,
        stored_ids: list[str],
        transition: Callable[..., Document],
        *values: Any,
    ) -> Document:
        """Apply the terminal status transition, cleaning up if it is refused."""
        try:
            return transition(document.id, *values)
        except StatusTransitionError:
            current = self.documents.get(document.owner_id, document.id)

        if current is None:
            removed = self._discard_chunks(
                self.vector_store.delete_document, document.owner_id, document.id
            )
            logger.warning(
                "Document %s was deleted during ingestion; removed %d chunks",
                document.id,
                removed,
            )
            return replace(document, state=Failed(DELETED_DURING_INGESTION))

        removed = 0
        if stored_ids:
            removed = self._discard_chunks(
                self.vector_store.delete_chunks, document.owner_id, stored_ids
            )
        logger.warning(
            "Document %s was already %s; discarded %d chunks from this run",
            document.id,
            current.status,
            removed,
        )
        return current

    def _discard_chunks(self, delete: Callable[..., int], *args: Any) -> int:
        try:
            return delete(*args)
        except Exception as exc:
            logger.error("Could not remove chunks of an abandoned ingestion: %s", exc)
            return 0

    def _run(self, document: Document, data: bytes, stored_ids: list[str]) -> int:
        # Step 1: Parse
        parsed = self.parser.parse(data)
        logger.info(
            "Parsed %s: %d pages with text of %d",
            document.filename,
            len(parsed.pages),
            parsed.total_pages,
        )

        # Step 2: Chunk
        chunks = chunk_pages(parsed.pages, self.chunker, self.min_page_chars)
        if not chunks:
            raise NoExtractableText("No meaningful text chunks extracted from PDF")
        logger.info("Created %d chunks for %s", len(chunks), document.filename)

        # Step 3: Embed, preserving chunk order
        embeddings = self.embedding_client.embed_texts([c.content for c in chunks])

        # Step 4: Store in bounded batches
        self._store(document, chunks, embeddings, stored_ids)
        return parsed.total_pages

    def _store(
        self,
        document: Document,
        chunks: list[PageChunk],
        embeddings: list[list[float]],
        stored_ids: list[str],
    ) -> None:
        """Insert records batch by batch, appending the ids of committed batches."""
        records = [
            ChunkRecord(
                id=str(uuid.uuid4()),
                document_id=document.id,
                owner_id=document.owner_id,
                content=chunk.content,
                page_number=chunk.page_number,
                chunk_index=chunk.chunk_index,
                embedding=embedding,
            )
            for chunk, embedding in zip(chunks, embeddings, strict=True)
        ]

        for start in range(0, len(records), self.insert_batch_size):
            batch = records[start : start + self.insert_batch_size]
            try:
                self.vector_store.insert(batch)
            except Exception as exc:
                raise VectorStoreFailure(
                    f"Failed to store chunks {start}-{start + len(batch) - 1}: {exc}"
                ) from exc
            stored_ids.extend(record.id for record in batch)

        logger.info("Stored %d chunks for document %s", len(stored_ids), document.id)
