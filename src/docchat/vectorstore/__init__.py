"""Vector store backends — FAISS (local) and Qdrant (production)."""

from docchat.vectorstore.base import VectorStore
from docchat.vectorstore.factory import available_stores, get_vector_store
from docchat.vectorstore.schemas import ChunkRecord, SearchHit

__all__ = [
    "ChunkRecord",
    "SearchHit",
    "VectorStore",
    "available_stores",
    "get_vector_store",
]
