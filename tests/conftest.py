"""Shared fixtures for tests — mock providers, synthetic PDFs, no network calls."""

from __future__ import annotations

import hashlib
import re
from collections.abc import Iterator
from pathlib import Path

import numpy as np
import pytest

from docchat.chunking.recursive_chunker import RecursiveChunker
from docchat.documents.repository import DocumentRepository
from docchat.documents.schemas import ParsedPage, ParsedPDF
from docchat.documents.storage import LocalObjectStorage
from docchat.embeddings.base import EmbeddingProvider
from docchat.embeddings.client import EmbeddingClient
from docchat.errors import NoExtractableText
from docchat.llm.base import LLMProvider, Message
from docchat.pipeline.answer import AnswerComposer
from docchat.pipeline.ingest import IngestPipeline
from docchat.retrieval.retriever import Retriever
from docchat.service import DocumentChatService
from docchat.vectorstore.faiss_store import FAISSStore

DIM = 4096

_STOPWORDS = {
    "a", "an", "and", "are", "as", "at", "be", "by", "does", "for", "from",
    "how", "in", "is", "it", "of", "on", "or", "that", "the", "this", "to",
    "what", "which", "with",
}
_WORD_RE = re.compile(r"[a-z0-9]+")


# ---------------------------------------------------------------------------
# Mock providers
# ---------------------------------------------------------------------------


def bag_of_words(text: str, dim: int = DIM) -> list[float]:
    """Deterministic bag-of-words vector; texts sharing words are similar."""
    vec = np.zeros(dim, dtype=np.float32)
    for word in _WORD_RE.findall(text.lower()):
        if word in _STOPWORDS:
            continue
        bucket = int(hashlib.md5(word.encode()).hexdigest(), 16) % dim
        vec[bucket] += 1.0
    norm = np.linalg.norm(vec)
    if norm > 0:
        vec /= norm
    return vec.tolist()


class MockEmbedder(EmbeddingProvider):
    def __init__(self, dim: int = DIM):
        self._dim = dim
        self.calls: list[str] = []

    def embed(self, text: str) -> list[float]:
        self.calls.append(text)
        return bag_of_words(text, self._dim)

    @property
    def dimension(self) -> int:
        return self._dim


class MockLLM(LLMProvider):
    """Scripted model: same text in batch and streaming mode."""

    def __init__(self, answer: str = "Photosynthesis uses chlorophyll "
                 '**[Source: "biology.pdf", Page 2]**.'):
        self.model = "mock-llm"
        self.answer = answer
        self.calls: list[list[Message]] = []
        self.stream_closed = False

    def complete(self, messages: list[Message]) -> str:
        self.calls.append(messages)
        return self.answer

    def complete_stream(self, messages: list[Message]) -> Iterator[str]:
        self.calls.append(messages)
        try:
            for piece in re.findall(r"\S+\s*", self.answer):
                yield piece
        finally:
            self.stream_closed = True


class FailingLLM(MockLLM):
    """Fails outright in batch mode; breaks off after two fragments when streaming."""

    def complete(self, messages: list[Message]) -> str:
        self.calls.append(messages)
        raise ConnectionError("model endpoint unreachable")

    def complete_stream(self, messages: list[Message]) -> Iterator[str]:
        self.calls.append(messages)
        yield "Partial "
        yield "answer "
        raise ConnectionError("stream reset by peer")


# ---------------------------------------------------------------------------
# Synthetic documents
# ---------------------------------------------------------------------------

# Each page: two paragraphs of about 540 characters -> two chunks per page.
PAGE_TEXTS = {
    1: (
        "Cell membranes regulate transport of molecules into the cell. " * 9,
        "Mitochondria produce ATP through cellular respiration pathways. " * 9,
    ),
    2: (
        "Photosynthesis uses chlorophyll to capture sunlight energy. " * 9,
        "Plants convert carbon dioxide and water into glucose and oxygen. " * 9,
    ),
    3: (
        "Genetic information is stored in DNA double helix molecules. " * 9,
        "Ribosomes translate messenger RNA into protein sequences daily. " * 9,
    ),
}


def page_text(number: int) -> str:
    first, second = PAGE_TEXTS[number]
    return first.strip() + "\n\n" + second.strip()


class FakeParser:
    """Stands in for ``PDFParser``; returns the three synthetic pages."""

    def __init__(self, pages: dict[int, str] | None = None):
        self.pages = pages if pages is not None else {n: page_text(n) for n in PAGE_TEXTS}

    def parse(self, data: bytes) -> ParsedPDF:
        pages = [ParsedPage(page_number=n, text=t) for n, t in sorted(self.pages.items()) if t]
        if not pages:
            raise NoExtractableText(
                "PDF appears to be scanned/image-based - no extractable text found"
            )
        return ParsedPDF(pages=pages, total_pages=max(self.pages, default=0))


PDF_BYTES = b"%PDF-1.4\n% synthetic\n"


@pytest.fixture
def sample_pdf_bytes() -> bytes:
    """A real three-page PDF generated with fpdf2."""
    from fpdf import FPDF

    pdf = FPDF()
    pdf.set_auto_page_break(auto=True, margin=15)
    pdf.set_font("Helvetica", size=11)
    for number in PAGE_TEXTS:
        pdf.add_page()
        pdf.multi_cell(0, 6, text=page_text(number))
    return bytes(pdf.output())


@pytest.fixture
def blank_pdf_bytes() -> bytes:
    """A two-page PDF with no text at all."""
    from fpdf import FPDF

    pdf = FPDF()
    pdf.add_page()
    pdf.add_page()
    return bytes(pdf.output())


# ---------------------------------------------------------------------------
# Wired components
# ---------------------------------------------------------------------------


@pytest.fixture
def embedder() -> MockEmbedder:
    return MockEmbedder()


@pytest.fixture
def embedding_client(embedder: MockEmbedder) -> EmbeddingClient:
    return EmbeddingClient(embedder, batch_delay=0, backoff_initial=0)


@pytest.fixture
def repo() -> DocumentRepository:
    return DocumentRepository.from_url("sqlite://")


@pytest.fixture
def store() -> FAISSStore:
    return FAISSStore(dimension=DIM)


@pytest.fixture
def storage(tmp_path: Path) -> LocalObjectStorage:
    return LocalObjectStorage(tmp_path / "uploads")


@pytest.fixture
def llm() -> MockLLM:
    return MockLLM()


@pytest.fixture
def pipeline(embedding_client, store, repo) -> IngestPipeline:
    return IngestPipeline(
        embedding_client=embedding_client,
        vector_store=store,
        documents=repo,
        parser=FakeParser(),
        chunker=RecursiveChunker(),
    )


@pytest.fixture
def retriever(embedding_client, store, repo) -> Retriever:
    return Retriever(embedding_client, store, repo)


@pytest.fixture
def composer(retriever, llm) -> AnswerComposer:
    return AnswerComposer(retriever, llm)


@pytest.fixture
def service(repo, store, storage, pipeline, composer) -> DocumentChatService:
    return DocumentChatService(
        documents=repo,
        vector_store=store,
        storage=storage,
        ingest_pipeline=pipeline,
        composer=composer,
    )
