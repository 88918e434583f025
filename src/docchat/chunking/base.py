"""Abstract base class for chunkers."""

from __future__ import annotations

from abc import ABC, abstractmethod


class BaseChunker(ABC):
    """Interface for text chunking strategies."""

    @abstractmethod
    def split_text(self, text: str) -> list[str]:
        """Split one page of text into chunks.

        Args:
            text: Extracted page text.

        Returns:
            Ordered, non-empty chunk strings.
        """
