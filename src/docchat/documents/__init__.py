"""Documents — data model, PDF parsing, record persistence, raw storage."""

from docchat.documents.pdf_parser import PDFParser
from docchat.documents.repository import DocumentRepository
from docchat.documents.schemas import (
    Document,
    DocumentStatus,
    Failed,
    ParsedPage,
    ParsedPDF,
    Processing,
    Ready,
)
from docchat.documents.storage import LocalObjectStorage, ObjectStorage, S3ObjectStorage

__all__ = [
    "Document",
    "DocumentRepository",
    "DocumentStatus",
    "Failed",
    "LocalObjectStorage",
    "ObjectStorage",
    "PDFParser",
    "ParsedPDF",
    "ParsedPage",
    "Processing",
    "Ready",
    "S3ObjectStorage",
]
