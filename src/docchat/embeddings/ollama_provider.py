"""Ollama embedding provider — local-first, no API keys needed.

Uses the Ollama REST API (http://localhost:11434) with models like
``nomic-embed-text``, ``mxbai-embed-large``, etc.
"""

from __future__ import annotations

import logging

import httpx

from docchat.embeddings.base import EmbeddingProvider
from docchat.httputil import check_response, transport_errors_as_transient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "nomic-embed-text"
DEFAULT_BASE_URL = "http://localhost:11434"
DEFAULT_DIM = 768


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Embed text via a local Ollama server."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        dimension: int = DEFAULT_DIM,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._dimension = dimension
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def embed(self, text: str) -> list[float]:
        with transport_errors_as_transient():
            resp = self._client.post(
                "/api/embeddings",
                json={"model": self.model, "prompt": text},
            )
        check_response(resp)
        return resp.json()["embedding"]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        """Embed via ``/api/embed`` (Ollama v0.5+), which accepts a list.

        Older servers answer 404; those fall back to one request per text.
        """
        if not texts:
            return []

        with transport_errors_as_transient():
            resp = self._client.post(
                "/api/embed",
                json={"model": self.model, "input": texts},
            )
        if resp.status_code == 404:
            logger.info("Ollama /api/embed unavailable, embedding one text per request")
            return super().embed_batch(texts)

        check_response(resp)
        return resp.json()["embeddings"]

    @property
    def dimension(self) -> int:
        return self._dimension
