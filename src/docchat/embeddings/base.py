"""Abstract base class for embedding providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor


class EmbeddingProvider(ABC):
    """Interface for text embedding models.

    Providers raise ``TransientProviderError`` for failures worth retrying
    (timeouts, rate limits, 5xx) and let anything else propagate. Retry
    policy lives in ``EmbeddingClient``, not here.
    """

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Embed a single text.

        Args:
            text: Already normalized text.

        Returns:
            Embedding vector of length ``dimension``.
        """

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed several texts, preserving input order.

        The default issues one ``embed`` call per text concurrently, one
        thread per text, so callers should keep batches small. Providers
        with a native batch endpoint override this.
        """
        if not texts:
            return []
        if len(texts) == 1:
            return [self.embed(texts[0])]
        with ThreadPoolExecutor(max_workers=len(texts)) as pool:
            return list(pool.map(self.embed, texts))

    @property
    @abstractmethod
    def dimension(self) -> int:
        """Return the embedding dimensionality."""

    @classmethod
    def provider_name(cls) -> str:
        """Return human-readable provider name."""
        return cls.__name__
