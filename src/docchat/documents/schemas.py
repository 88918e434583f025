"""Data models for uploaded documents and parsed PDFs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any


class DocumentStatus(StrEnum):
    """Persisted lifecycle status of a document."""

    PROCESSING = "processing"
    READY = "ready"
    ERROR = "error"


# ---------------------------------------------------------------------------
# Status variants
#
# A document is in exactly one of these states. Page and chunk counts only
# exist on ``Ready``; the error message only exists on ``Failed``.
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Processing:
    status = DocumentStatus.PROCESSING


@dataclass(frozen=True)
class Ready:
    total_pages: int
    total_chunks: int
    status = DocumentStatus.READY


@dataclass(frozen=True)
class Failed:
    message: str
    status = DocumentStatus.ERROR


DocumentState = Processing | Ready | Failed


@dataclass(frozen=True)
class Document:
    """One uploaded PDF and its ingestion state."""

    id: str
    owner_id: str
    filename: str
    storage_path: str
    state: DocumentState
    created_at: datetime

    @property
    def status(self) -> DocumentStatus:
        return self.state.status

    @property
    def total_pages(self) -> int | None:
        return self.state.total_pages if isinstance(self.state, Ready) else None

    @property
    def total_chunks(self) -> int | None:
        return self.state.total_chunks if isinstance(self.state, Ready) else None

    @property
    def error_message(self) -> str | None:
        return self.state.message if isinstance(self.state, Failed) else None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "filename": self.filename,
            "storage_path": self.storage_path,
            "status": self.status.value,
            "total_pages": self.total_pages,
            "total_chunks": self.total_chunks,
            "error_message": self.error_message,
            "created_at": self.created_at.isoformat(),
        }


@dataclass(frozen=True)
class ParsedPage:
    page_number: int  # 1-based
    text: str


@dataclass
class ParsedPDF:
    """Result of parsing a PDF.

    Attributes:
        pages: Pages with non-empty text, in page order.
        total_pages: Page count of the PDF (including pages without text).
        metadata: Title/author when the PDF declares them.
    """

    pages: list[ParsedPage]
    total_pages: int
    metadata: dict[str, str] = field(default_factory=dict)
