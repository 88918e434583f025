"""Page-aware text chunking."""

from docchat.chunking.base import BaseChunker
from docchat.chunking.pages import chunk_pages
from docchat.chunking.recursive_chunker import RecursiveChunker
from docchat.chunking.schemas import PageChunk

__all__ = ["BaseChunker", "PageChunk", "RecursiveChunker", "chunk_pages"]
