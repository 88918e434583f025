"""End-to-end RAG pipeline — ingestion, prompts, sources, answers."""

from docchat.pipeline.answer import AnswerComposer
from docchat.pipeline.citations import build_sources
from docchat.pipeline.ingest import IngestPipeline
from docchat.pipeline.schemas import (
    ChatResponse,
    ChatTurn,
    DoneEvent,
    ErrorEvent,
    Source,
    StreamEvent,
    StreamingAnswer,
    TokenEvent,
)

__all__ = [
    "AnswerComposer",
    "ChatResponse",
    "ChatTurn",
    "DoneEvent",
    "ErrorEvent",
    "IngestPipeline",
    "Source",
    "StreamEvent",
    "StreamingAnswer",
    "TokenEvent",
    "build_sources",
]
