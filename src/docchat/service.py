"""Document chat service — the API the HTTP, CLI and Lambda layers call.

``build_service`` wires concrete providers from ``Settings``; tests build
``DocumentChatService`` directly with fakes.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Iterator, Sequence
from pathlib import PurePath

from docchat.chunking.recursive_chunker import RecursiveChunker
from docchat.config import Settings, load_settings
from docchat.documents.pdf_parser import PDFParser
from docchat.documents.repository import DocumentRepository
from docchat.documents.schemas import Document, DocumentStatus
from docchat.documents.storage import (
    URL_EXPIRY_SECONDS,
    ObjectStorage,
    get_object_storage,
    storage_key,
)
from docchat.embeddings.client import EmbeddingClient
from docchat.embeddings.factory import embedding_provider_from_settings
from docchat.errors import DocChatError, InvalidUpload, NotFound
from docchat.llm.factory import llm_provider_from_settings
from docchat.pipeline.answer import AnswerComposer
from docchat.pipeline.ingest import IngestPipeline
from docchat.pipeline.schemas import (
    ChatResponse,
    ChatTurn,
    DoneEvent,
    ErrorEvent,
    StreamEvent,
    TokenEvent,
)
from docchat.retrieval.retriever import Retriever
from docchat.vectorstore.base import VectorStore
from docchat.vectorstore.factory import vector_store_from_settings

logger = logging.getLogger(__name__)

PDF_SIGNATURE = b"%PDF"
MAX_FILE_SIZE_MB = 50


def validate_upload(filename: str, data: bytes, max_file_size_mb: int = MAX_FILE_SIZE_MB) -> None:
    """Reject anything that is not a non-empty PDF within the size limit.

    Raises:
        InvalidUpload: With a message suitable for the uploader.
    """
    if not filename or PurePath(filename).suffix.lower() != ".pdf":
        raise InvalidUpload("Only PDF files are allowed")
    if not data:
        raise InvalidUpload("Uploaded file is empty")
    if len(data) > max_file_size_mb * 1024 * 1024:
        raise InvalidUpload(f"File too large. Maximum size is {max_file_size_mb}MB.")
    if not data.startswith(PDF_SIGNATURE):
        raise InvalidUpload("Only PDF files are allowed")


class DocumentChatService:
    """Upload, ingest, list, delete documents and answer questions about them."""

    def __init__(
        self,
        documents: DocumentRepository,
        vector_store: VectorStore,
        storage: ObjectStorage,
        ingest_pipeline: IngestPipeline,
        composer: AnswerComposer,
        max_file_size_mb: int = MAX_FILE_SIZE_MB,
    ):
        self.documents = documents
        self.vector_store = vector_store
        self.storage = storage
        self.ingest_pipeline = ingest_pipeline
        self.composer = composer
        self.max_file_size_mb = max_file_size_mb

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def upload(self, owner_id: str, filename: str, data: bytes) -> Document:
        """Validate and store a PDF and create its ``processing`` record.

        Ingestion is left to a worker calling :meth:`process_stored`.
        """
        validate_upload(filename, data, self.max_file_size_mb)
        document_id = str(uuid.uuid4())
        key = storage_key(owner_id, document_id, filename)
        self.storage.put(key, data)
        try:
            return self.documents.create(
                owner_id=owner_id,
                filename=PurePath(filename).name,
                storage_path=key,
                document_id=document_id,
            )
        except Exception:
            self._discard_stored(key)
            raise

    def ingest(self, owner_id: str, filename: str, data: bytes) -> Document:
        """Upload and ingest synchronously.

        Returns:
            The document in its terminal ``ready`` or ``error`` state.
        """
        document = self.upload(owner_id, filename, data)
        return self.ingest_pipeline.process(document, data)

    def process_stored(self, owner_id: str, document_id: str) -> Document:
        """Ingest a previously uploaded document from object storage.

        Documents that already reached a terminal state are returned as-is.
        """
        document = self.get_document(owner_id, document_id)
        if document.status is not DocumentStatus.PROCESSING:
            logger.info("Document %s already %s; skipping", document_id, document.status)
            return document
        try:
            data = self.storage.get(document.storage_path)
        except DocChatError as exc:
            logger.error("Stored PDF for %s unavailable: %s", document_id, exc)
            return self.ingest_pipeline.fail(document, str(exc))
        return self.ingest_pipeline.process(document, data)

    def list_documents(self, owner_id: str) -> list[Document]:
        return self.documents.list_by_owner(owner_id)

    def get_document(self, owner_id: str, document_id: str) -> Document:
        document = self.documents.get(owner_id, document_id)
        if document is None:
            raise NotFound(f"Document {document_id} not found")
        return document

    def document_url(
        self, owner_id: str, document_id: str, expires_in: int = URL_EXPIRY_SECONDS
    ) -> str:
        """Return a link for viewing the owner's stored PDF.

        Raises:
            NotFound: The document does not exist, belongs to someone else, or
                has no stored file.
        """
        document = self.get_document(owner_id, document_id)
        if not document.storage_path:
            raise NotFound(f"Document {document_id} has no stored file")
        return self.storage.url(document.storage_path, expires_in=expires_in)

    def delete_document(self, owner_id: str, document_id: str) -> None:
        """Delete a document, its chunks, and its stored PDF.

        Raises:
            NotFound: The document does not exist or belongs to someone else.
        """
        document = self.get_document(owner_id, document_id)
        removed = self.vector_store.delete_document(owner_id, document_id)
        if not self.documents.delete(owner_id, document_id):
            raise NotFound(f"Document {document_id} not found")
        self._discard_stored(document.storage_path)
        logger.info("Deleted document %s (%d chunks)", document_id, removed)

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    def retrieve_and_answer(
        self,
        owner_id: str,
        query: str,
        document_ids: Sequence[str] | None = None,
        history: Sequence[ChatTurn] | None = None,
    ) -> ChatResponse:
        return self.composer.answer(owner_id, query, document_ids, history)

    def retrieve_and_answer_stream(
        self,
        owner_id: str,
        query: str,
        document_ids: Sequence[str] | None = None,
        history: Sequence[ChatTurn] | None = None,
    ) -> Iterator[StreamEvent]:
        """Yield ``TokenEvent``s, then one ``DoneEvent`` or ``ErrorEvent``.

        Closing the iterator early releases the model connection.
        """
        sent = 0
        try:
            streaming = self.composer.answer_stream(owner_id, query, document_ids, history)
            tokens = streaming.tokens
            try:
                for token in tokens:
                    sent += 1
                    yield TokenEvent(token)
            finally:
                close = getattr(tokens, "close", None)
                if close is not None:
                    close()
        except DocChatError as exc:
            logger.error("Chat stream failed after %d tokens: %s", sent, exc)
            yield ErrorEvent(error=str(exc), incomplete=sent > 0)
            return

        yield DoneEvent(sources=streaming.sources, model=streaming.model)

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _discard_stored(self, key: str) -> None:
        if not key:
            return
        try:
            self.storage.delete(key)
        except Exception as exc:
            logger.warning("Could not remove stored object %s: %s", key, exc)


# ---------------------------------------------------------------------------
# Wiring
# ---------------------------------------------------------------------------


def build_service(settings: Settings | None = None) -> DocumentChatService:
    """Construct a fully wired service from configuration."""
    settings = settings or load_settings()

    documents = DocumentRepository.from_url(settings.database.url, echo=settings.database.echo)

    embedding_client = EmbeddingClient(
        embedding_provider_from_settings(settings.embedding),
        max_chars=settings.embedding.max_chars,
        batch_size=settings.embedding.batch_size,
        batch_delay=settings.embedding.batch_delay,
        max_attempts=settings.embedding.max_attempts,
        backoff_initial=settings.embedding.backoff_initial,
        backoff_max=settings.embedding.backoff_max,
    )

    vector_store = vector_store_from_settings(settings.vectorstore, embedding_client.dimension)

    storage = get_object_storage(
        settings.storage.backend,
        path=settings.storage.path,
        bucket=settings.storage.bucket,
        region=settings.storage.region,
    )

    chunking = settings.chunking
    ingest_pipeline = IngestPipeline(
        embedding_client=embedding_client,
        vector_store=vector_store,
        documents=documents,
        parser=PDFParser(max_pages=settings.ingestion.max_pages),
        chunker=RecursiveChunker(
            chunk_size=chunking.chunk_size,
            chunk_overlap=chunking.chunk_overlap,
            separators=chunking.separators,
        ),
        insert_batch_size=settings.ingestion.insert_batch_size,
        min_page_chars=chunking.min_page_chars,
    )

    retriever = Retriever(
        embedding_client=embedding_client,
        vector_store=vector_store,
        documents=documents,
        top_k=settings.retrieval.top_k,
        threshold=settings.retrieval.similarity_threshold,
    )
    composer = AnswerComposer(
        retriever=retriever,
        llm=llm_provider_from_settings(settings.llm),
        history_turns=settings.answer.history_turns,
        max_sources=settings.answer.max_sources,
        excerpt_chars=settings.answer.excerpt_chars,
        max_context_tokens=settings.answer.max_context_tokens,
        tokenizer=settings.answer.tokenizer,
    )

    return DocumentChatService(
        documents=documents,
        vector_store=vector_store,
        storage=storage,
        ingest_pipeline=ingest_pipeline,
        composer=composer,
        max_file_size_mb=settings.ingestion.max_file_size_mb,
    )
