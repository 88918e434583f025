"""Recursive character chunker with overlap.

Splits on the highest-priority separator present in the text (paragraph,
line, sentence, clause, word, then single characters), recursing into any
piece still larger than ``chunk_size``, and merges adjacent small pieces
back up to ``chunk_size`` with up to ``chunk_overlap`` characters repeated
between consecutive chunks.
"""

from __future__ import annotations

import logging
import re

from docchat.chunking.base import BaseChunker

logger = logging.getLogger(__name__)

CHUNK_SIZE = 800
CHUNK_OVERLAP = 200
DEFAULT_SEPARATORS = ["\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ", ""]


class RecursiveChunker(BaseChunker):
    """Character-budget chunker using a cascade of separators."""

    def __init__(
        self,
        chunk_size: int = CHUNK_SIZE,
        chunk_overlap: int = CHUNK_OVERLAP,
        separators: list[str] | None = None,
    ):
        if chunk_size <= 0:
            raise ValueError("chunk_size must be positive")
        if not 0 <= chunk_overlap < chunk_size:
            raise ValueError(
                f"Overlap ({chunk_overlap}) must be >= 0 and less than "
                f"chunk size ({chunk_size})"
            )
        self.chunk_size = chunk_size
        self.chunk_overlap = chunk_overlap
        self.separators = list(separators) if separators else list(DEFAULT_SEPARATORS)

    def split_text(self, text: str) -> list[str]:
        chunks = self._split(text, self.separators)
        return [c for c in chunks if c.strip()]

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _split(self, text: str, separators: list[str]) -> list[str]:
        separator = separators[-1]
        remaining: list[str] = []
        for i, candidate in enumerate(separators):
            if candidate == "":
                separator = ""
                break
            if candidate in text:
                separator = candidate
                remaining = separators[i + 1 :]
                break

        chunks: list[str] = []
        small: list[str] = []
        for piece in self._split_keeping_separator(text, separator):
            if len(piece) <= self.chunk_size:
                small.append(piece)
                continue
            if small:
                chunks.extend(self._merge(small))
                small = []
            if remaining:
                chunks.extend(self._split(piece, remaining))
            else:
                chunks.append(piece)

        if small:
            chunks.extend(self._merge(small))
        return chunks

    @staticmethod
    def _split_keeping_separator(text: str, separator: str) -> list[str]:
        """Split ``text`` leaving each separator at the end of its piece."""
        if separator == "":
            return list(text)
        parts = re.split(f"({re.escape(separator)})", text)
        pieces = [parts[i] + parts[i + 1] for i in range(0, len(parts) - 1, 2)]
        if len(parts) % 2 == 1:
            pieces.append(parts[-1])
        return [p for p in pieces if p]

    def _merge(self, pieces: list[str]) -> list[str]:
        """Greedily pack pieces into chunks, carrying a tail of up to ``chunk_overlap``."""
        chunks: list[str] = []
        window: list[str] = []
        window_len = 0

        for piece in pieces:
            if window and window_len + len(piece) > self.chunk_size:
                chunk = "".join(window).strip()
                if chunk:
                    chunks.append(chunk)
                while window and (
                    window_len > self.chunk_overlap
                    or window_len + len(piece) > self.chunk_size
                ):
                    window_len -= len(window.pop(0))
            window.append(piece)
            window_len += len(piece)

        chunk = "".join(window).strip()
        if chunk:
            chunks.append(chunk)
        return chunks
