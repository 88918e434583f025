"""Local sentence-transformers embedding provider.

Runs the model in-process, so nothing leaves the machine and no rate limits
apply. Requires the ``huggingface`` extra.
"""

from __future__ import annotations

import logging
from typing import Any

from docchat.embeddings.base import EmbeddingProvider

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "sentence-transformers/all-MiniLM-L6-v2"


class HuggingFaceEmbeddingProvider(EmbeddingProvider):
    """Embed chunks and queries with a locally loaded SentenceTransformer.

    Vectors are L2-normalized on output so inner-product and cosine
    similarity agree in every vector store backend.
    """

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        device: str | None = None,
        encode_batch_size: int = 32,
    ):
        try:
            from sentence_transformers import SentenceTransformer
        except ImportError as exc:
            raise ImportError(
                "sentence-transformers required: pip install docchat-rag[huggingface]"
            ) from exc

        self.model = model
        self.encode_batch_size = encode_batch_size
        self._encoder: Any = SentenceTransformer(model, device=device)
        self._dim: int = self._encoder.get_sentence_embedding_dimension()
        logger.info("Loaded sentence-transformers model %s (dim=%d)", model, self._dim)

    def embed(self, text: str) -> list[float]:
        return self.embed_batch([text])[0]

    def embed_batch(self, texts: list[str]) -> list[list[float]]:
        # One encode call for the whole batch; the model batches internally.
        if not texts:
            return []
        vectors = self._encoder.encode(
            texts,
            batch_size=self.encode_batch_size,
            normalize_embeddings=True,
            show_progress_bar=False,
        )
        return [vec.tolist() for vec in vectors]

    @property
    def dimension(self) -> int:
        return self._dim
