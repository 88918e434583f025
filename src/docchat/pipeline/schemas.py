"""Data models for the RAG pipeline."""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

ROLES = ("user", "assistant")


@dataclass(frozen=True)
class Source:
    """A deduplicated citation: one per (filename, page)."""

    filename: str
    page_number: int
    excerpt: str
    similarity: float

    def to_dict(self) -> dict[str, Any]:
        return {
            "filename": self.filename,
            "page_number": self.page_number,
            "excerpt": self.excerpt,
            "similarity": self.similarity,
        }


@dataclass(frozen=True)
class ChatTurn:
    """One prior message of the conversation supplied by the caller."""

    role: str
    content: str

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Invalid chat role '{self.role}'; expected one of {ROLES}")

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ChatTurn:
        return cls(role=str(data.get("role", "")), content=str(data.get("content", "")))


@dataclass
class ChatResponse:
    """Output of a batch question answer."""

    answer: str
    sources: list[Source] = field(default_factory=list)
    model: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "answer": self.answer,
            "sources": [s.to_dict() for s in self.sources],
            "model": self.model,
        }


@dataclass
class StreamingAnswer:
    """Sources known up front plus a lazy stream of answer fragments.

    ``tokens`` is single-use. Closing it before exhaustion releases the
    model connection.
    """

    sources: list[Source]
    model: str
    tokens: Iterator[str]


# ---------------------------------------------------------------------------
# Streaming events
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class TokenEvent:
    token: str

    def to_dict(self) -> dict[str, Any]:
        return {"token": self.token}


@dataclass(frozen=True)
class DoneEvent:
    sources: list[Source]
    model: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "done": True,
            "sources": [s.to_dict() for s in self.sources],
            "model": self.model,
        }


@dataclass(frozen=True)
class ErrorEvent:
    """Terminal failure. ``incomplete`` is set when tokens were already sent."""

    error: str
    incomplete: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {"error": self.error, "incomplete": self.incomplete}


StreamEvent = TokenEvent | DoneEvent | ErrorEvent
