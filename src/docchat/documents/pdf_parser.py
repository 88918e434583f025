"""PDF text extraction with ``pdfplumber``.

Only PDFs are accepted; text is extracted page by page so chunks can carry a page
number for citations.
"""

from __future__ import annotations

import io
import logging

import pdfplumber

from docchat.documents.schemas import ParsedPage, ParsedPDF
from docchat.errors import NoExtractableText, ParseFailure

logger = logging.getLogger(__name__)

MAX_PAGES = 500


class PDFParser:
    """Parse PDF bytes into ordered pages of text."""

    def __init__(self, max_pages: int = MAX_PAGES):
        self.max_pages = max_pages

    def parse(self, data: bytes) -> ParsedPDF:
        """Extract text from each page.

        Raises:
            NoExtractableText: The PDF has pages but none of them carry text.
            ParseFailure: The bytes are empty or not a readable PDF.
        """
        if not data:
            raise ParseFailure("PDF file is empty")

        pages: list[ParsedPage] = []
        try:
            with pdfplumber.open(io.BytesIO(data)) as pdf:
                total_pages = len(pdf.pages)
                metadata = self._metadata(pdf.metadata or {})
                for number, page in enumerate(pdf.pages[: self.max_pages], start=1):
                    text = (page.extract_text() or "").strip()
                    if text:
                        pages.append(ParsedPage(page_number=number, text=text))
        except Exception as exc:
            raise ParseFailure(f"Failed to parse PDF: {exc}") from exc

        if not pages:
            raise NoExtractableText(
                "PDF appears to be scanned/image-based - no extractable text found"
            )

        if total_pages > self.max_pages:
            logger.warning(
                "PDF has %d pages; only the first %d were extracted",
                total_pages,
                self.max_pages,
            )

        logger.info(
            "Parsed PDF: %d pages, %d with text, %d characters",
            total_pages,
            len(pages),
            sum(len(p.text) for p in pages),
        )
        return ParsedPDF(pages=pages, total_pages=total_pages, metadata=metadata)

    @staticmethod
    def _metadata(info: dict) -> dict[str, str]:
        meta: dict[str, str] = {}
        for key in ("Title", "Author"):
            value = info.get(key)
            if isinstance(value, bytes):
                value = value.decode("utf-8", errors="replace")
            if value:
                meta[key.lower()] = str(value)
        return meta
