"""Hosted HuggingFace Inference API embedding provider.

Calls the ``feature-extraction`` pipeline endpoint over HTTP, one text per
request. Needs an API token via ``HF_API_KEY``.
"""

from __future__ import annotations

import logging
import os

import httpx

from docchat.embeddings.base import EmbeddingProvider
from docchat.errors import ConfigurationError
from docchat.httputil import check_response, transport_errors_as_transient

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"
DEFAULT_BASE_URL = "https://api-inference.huggingface.co"
DEFAULT_DIM = 384


class HFInferenceEmbeddingProvider(EmbeddingProvider):
    """Embed text via the HuggingFace Inference API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        dimension: int = DEFAULT_DIM,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 30.0,
        transport: httpx.BaseTransport | None = None,
    ):
        api_key = api_key or os.getenv("HF_API_KEY")
        if not api_key:
            raise ConfigurationError("Missing HF_API_KEY for the huggingface_api provider")

        self.model = model
        self._dimension = dimension
        self._client = httpx.Client(
            base_url=base_url.rstrip("/"),
            headers={"Authorization": f"Bearer {api_key}"},
            timeout=timeout,
            transport=transport,
        )

    def embed(self, text: str) -> list[float]:
        with transport_errors_as_transient():
            resp = self._client.post(
                f"/pipeline/feature-extraction/{self.model}",
                json={"inputs": text, "options": {"wait_for_model": True}},
            )
        check_response(resp)
        return self._unwrap(resp.json())

    @property
    def dimension(self) -> int:
        return self._dimension

    @staticmethod
    def _unwrap(payload) -> list[float]:
        """The endpoint returns either ``[floats]`` or ``[[floats]]``."""
        if isinstance(payload, list) and payload:
            if isinstance(payload[0], list):
                return payload[0]
            if isinstance(payload[0], int | float):
                return payload
        raise ValueError("Unexpected embedding format from HuggingFace API")
