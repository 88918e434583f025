"""Answer composer — question → retrieve → grounded prompt → LLM → sources."""

from __future__ import annotations

import logging
from collections.abc import Iterator, Sequence

from docchat.errors import ModelUnavailable
from docchat.llm.base import LLMProvider, Message
from docchat.pipeline.citations import EXCERPT_CHARS, MAX_SOURCES, build_sources
from docchat.pipeline.prompts import (
    DEFAULT_HISTORY_TURNS,
    EMPTY_COMPLETION_ANSWER,
    NO_RESULTS_ANSWER,
    TokenCounter,
    build_context,
    build_messages,
    tiktoken_counter,
)
from docchat.pipeline.schemas import ChatResponse, ChatTurn, StreamingAnswer
from docchat.retrieval.retriever import Retriever
from docchat.retrieval.schemas import RetrievedChunk

logger = logging.getLogger(__name__)


class AnswerComposer:
    """Orchestrates retrieve → prompt → generate, in batch or streaming mode.

    When retrieval finds nothing the composer answers with a fixed message
    and never calls the model.
    """

    def __init__(
        self,
        retriever: Retriever,
        llm: LLMProvider,
        history_turns: int = DEFAULT_HISTORY_TURNS,
        max_sources: int = MAX_SOURCES,
        excerpt_chars: int = EXCERPT_CHARS,
        max_context_tokens: int | None = None,
        token_counter: TokenCounter | None = None,
        tokenizer: str = "cl100k_base",
    ):
        self.retriever = retriever
        self.llm = llm
        self.history_turns = history_turns
        self.max_sources = max_sources
        self.excerpt_chars = excerpt_chars
        self.max_context_tokens = max_context_tokens
        if token_counter is None and max_context_tokens is not None:
            token_counter = tiktoken_counter(tokenizer)
        self.token_counter = token_counter

    @property
    def model(self) -> str:
        return getattr(self.llm, "model", "unknown")

    def answer(
        self,
        owner_id: str,
        query: str,
        document_ids: Sequence[str] | None = None,
        history: Sequence[ChatTurn] | None = None,
    ) -> ChatResponse:
        """Answer ``query`` from the owner's documents.

        Raises:
            EmbeddingUnavailable: The query could not be embedded.
            VectorStoreFailure: The search failed.
            ModelUnavailable: The model call failed.
        """
        chunks = self.retriever.retrieve(owner_id, query, document_ids)
        if not chunks:
            return ChatResponse(answer=NO_RESULTS_ANSWER, sources=[], model=self.model)

        messages = self._messages(query, chunks, history)
        try:
            text = self.llm.complete(messages)
        except Exception as exc:
            raise ModelUnavailable(f"Language model call failed: {exc}") from exc

        sources = build_sources(chunks, self.max_sources, self.excerpt_chars)
        logger.info(
            "Answered query with %d context chunks, %d sources",
            len(chunks),
            len(sources),
        )
        return ChatResponse(
            answer=text or EMPTY_COMPLETION_ANSWER,
            sources=sources,
            model=self.model,
        )

    def answer_stream(
        self,
        owner_id: str,
        query: str,
        document_ids: Sequence[str] | None = None,
        history: Sequence[ChatTurn] | None = None,
    ) -> StreamingAnswer:
        """Retrieve eagerly, then return sources with a lazy token stream.

        Retrieval errors are raised here. Model errors are raised from the
        token iterator as ``ModelUnavailable``.
        """
        chunks = self.retriever.retrieve(owner_id, query, document_ids)
        if not chunks:
            return StreamingAnswer(sources=[], model=self.model, tokens=iter([NO_RESULTS_ANSWER]))

        messages = self._messages(query, chunks, history)
        sources = build_sources(chunks, self.max_sources, self.excerpt_chars)
        return StreamingAnswer(
            sources=sources,
            model=self.model,
            tokens=self._stream(messages),
        )

    # ------------------------------------------------------------------
    # Private
    # ------------------------------------------------------------------

    def _messages(
        self,
        query: str,
        chunks: list[RetrievedChunk],
        history: Sequence[ChatTurn] | None,
    ) -> list[Message]:
        context = build_context(chunks, self.max_context_tokens, self.token_counter)
        return build_messages(query, context, history, self.history_turns)

    def _stream(self, messages: list[Message]) -> Iterator[str]:
        fragments = self.llm.complete_stream(messages)
        emitted = 0
        try:
            for fragment in fragments:
                emitted += 1
                yield fragment
        except Exception as exc:
            logger.warning("Model stream failed after %d fragments: %s", emitted, exc)
            raise ModelUnavailable(f"Language model stream failed: {exc}") from exc
        finally:
            close = getattr(fragments, "close", None)
            if close is not None:
                close()
