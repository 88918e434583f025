"""Embedding providers — Ollama, OpenAI, HuggingFace (local and hosted)."""

from docchat.embeddings.base import EmbeddingProvider
from docchat.embeddings.client import EmbeddingClient, normalize_text
from docchat.embeddings.factory import available_providers, get_embedding_provider

__all__ = [
    "EmbeddingClient",
    "EmbeddingProvider",
    "available_providers",
    "get_embedding_provider",
    "normalize_text",
]
