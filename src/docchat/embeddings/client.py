"""Embedding client — normalization, batching, retry on top of a provider.

Every caller (ingestion and retrieval) goes through this client so chunks
and queries are normalized the same way and land in the same vector space.
"""

from __future__ import annotations

import logging
import re
import time

from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from docchat.embeddings.base import EmbeddingProvider
from docchat.errors import ConfigurationError, EmbeddingUnavailable, TransientProviderError

logger = logging.getLogger(__name__)

MAX_CHARS = 8000
BATCH_SIZE = 5
BATCH_DELAY = 0.3
MAX_ATTEMPTS = 4

_NEWLINES = re.compile(r"\n+")


def normalize_text(text: str, max_chars: int = MAX_CHARS) -> str:
    """Collapse newlines to spaces, trim, and truncate to ``max_chars``."""
    return _NEWLINES.sub(" ", text).strip()[:max_chars]


class EmbeddingClient:
    """Embed texts through an ``EmbeddingProvider`` with bounded retries.

    Texts are sent in batches of ``batch_size``; the provider may embed a
    batch concurrently, batches run one after another with ``batch_delay``
    seconds between them. A batch failing with ``TransientProviderError``
    is retried with exponential backoff up to ``max_attempts`` times. Any
    failure that survives is raised as ``EmbeddingUnavailable``.
    """

    def __init__(
        self,
        provider: EmbeddingProvider,
        max_chars: int = MAX_CHARS,
        batch_size: int = BATCH_SIZE,
        batch_delay: float = BATCH_DELAY,
        max_attempts: int = MAX_ATTEMPTS,
        backoff_initial: float = 0.5,
        backoff_max: float = 8.0,
    ):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.provider = provider
        self.max_chars = max_chars
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.max_attempts = max_attempts
        self.backoff_initial = backoff_initial
        self.backoff_max = backoff_max

    @property
    def dimension(self) -> int:
        return self.provider.dimension

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def embed_query(self, query: str) -> list[float]:
        return self.embed_texts([query])[0]

    def embed_texts(self, texts: list[str]) -> list[list[float]]:
        """Embed ``texts`` in order; output[i] is the vector of texts[i]."""
        normalized = [normalize_text(t, self.max_chars) for t in texts]
        vectors: list[list[float]] = []

        for start in range(0, len(normalized), self.batch_size):
            if start and self.batch_delay > 0:
                time.sleep(self.batch_delay)
            batch = normalized[start : start + self.batch_size]
            vectors.extend(self._embed_batch(batch))

        if len(texts) > self.batch_size:
            logger.info("Embedded %d texts in batches of %d", len(texts), self.batch_size)
        return vectors

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _embed_batch(self, batch: list[str]) -> list[list[float]]:
        retrying = Retrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=wait_exponential(multiplier=self.backoff_initial, max=self.backoff_max),
            retry=retry_if_exception_type(TransientProviderError),
            before_sleep=lambda state: logger.warning(
                "Embedding batch failed (attempt %d/%d): %s",
                state.attempt_number,
                self.max_attempts,
                state.outcome.exception() if state.outcome else "unknown error",
            ),
            reraise=True,
        )
        try:
            vectors = retrying(self.provider.embed_batch, batch)
        except TransientProviderError as exc:
            raise EmbeddingUnavailable(
                f"Embedding service unavailable after {self.max_attempts} attempts: {exc}"
            ) from exc
        except Exception as exc:
            raise EmbeddingUnavailable(f"Embedding request failed: {exc}") from exc

        if len(vectors) != len(batch):
            raise EmbeddingUnavailable(
                f"Embedding service returned {len(vectors)} vectors for {len(batch)} texts"
            )
        for vec in vectors:
            if len(vec) != self.dimension:
                raise ConfigurationError(
                    f"Embedding dimension mismatch: provider {self.provider.provider_name()} "
                    f"returned {len(vec)} values, expected {self.dimension}"
                )
        return vectors
