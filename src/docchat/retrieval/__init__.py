"""Retrieval — owner-scoped similarity search with filename resolution."""

from docchat.retrieval.retriever import Retriever
from docchat.retrieval.schemas import RetrievedChunk

__all__ = ["RetrievedChunk", "Retriever"]
