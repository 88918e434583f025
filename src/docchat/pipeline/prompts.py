"""Grounded-answer prompt templates and context packing.

Context blocks are packed in retrieval order (highest similarity first)
under an optional token budget counted with ``tiktoken``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from functools import lru_cache

from docchat.llm.base import Message
from docchat.pipeline.schemas import ChatTurn
from docchat.retrieval.schemas import RetrievedChunk

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Fixed texts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = """\
You are a document study assistant. Answer questions using ONLY the provided \
document excerpts. Follow these rules strictly:

1. Answer accurately using information from the provided sources below.
2. ALWAYS cite your sources using this format: **[Source: "filename.pdf", Page X]** \
after each claim.
3. When comparing across documents, clearly label which information comes from \
which file.
4. Use clear formatting: headers, bullet points, bold text for readability.
5. If the provided sources don't contain enough information, say so clearly.
6. Never make up information that isn't in the sources.

--- DOCUMENT EXCERPTS ---
{context}
-------------------------"""

NO_RESULTS_ANSWER = (
    "I couldn't find any relevant information in your uploaded documents for this "
    "question. Please try rephrasing or make sure you've uploaded the relevant PDFs."
)

EMPTY_COMPLETION_ANSWER = "I was unable to generate a response. Please try again."

BLOCK_DELIMITER = "\n\n---\n\n"

DEFAULT_HISTORY_TURNS = 6

TokenCounter = Callable[[str], int]


# ---------------------------------------------------------------------------
# Token counting
# ---------------------------------------------------------------------------


@lru_cache(maxsize=4)
def _encoding(name: str):
    import tiktoken

    return tiktoken.get_encoding(name)


def tiktoken_counter(encoding_name: str = "cl100k_base") -> TokenCounter:
    """Return a function counting tokens with the named ``tiktoken`` encoding."""

    def count(text: str) -> int:
        return len(_encoding(encoding_name).encode(text))

    return count


# ---------------------------------------------------------------------------
# Context and messages
# ---------------------------------------------------------------------------


def format_block(index: int, chunk: RetrievedChunk) -> str:
    """Label one chunk as ``[Source i: "<filename>", Page n]`` followed by its text."""
    return f'[Source {index}: "{chunk.filename}", Page {chunk.page_number}]\n{chunk.content}'


def build_context(
    chunks: Sequence[RetrievedChunk],
    max_tokens: int | None = None,
    token_counter: TokenCounter | None = None,
) -> str:
    """Join labeled chunk blocks in the given order.

    With ``max_tokens`` set, blocks are added until the next one would exceed
    the budget. The first block is always included.
    """
    blocks: list[str] = []
    used = 0

    for i, chunk in enumerate(chunks, 1):
        block = format_block(i, chunk)
        if max_tokens is not None and token_counter is not None:
            cost = token_counter(block) + (token_counter(BLOCK_DELIMITER) if blocks else 0)
            if blocks and used + cost > max_tokens:
                logger.info(
                    "Context budget of %d tokens reached; kept %d of %d blocks",
                    max_tokens,
                    len(blocks),
                    len(chunks),
                )
                break
            used += cost
        blocks.append(block)

    return BLOCK_DELIMITER.join(blocks)


def build_messages(
    query: str,
    context: str,
    history: Sequence[ChatTurn] | None = None,
    history_turns: int = DEFAULT_HISTORY_TURNS,
) -> list[Message]:
    """System instruction with context, the last ``history_turns`` turns, then the query."""
    messages: list[Message] = [
        {"role": "system", "content": SYSTEM_PROMPT.format(context=context)},
    ]
    if history and history_turns > 0:
        for turn in list(history)[-history_turns:]:
            messages.append({"role": turn.role, "content": turn.content})
    messages.append({"role": "user", "content": query})
    return messages
