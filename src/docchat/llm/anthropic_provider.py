"""Anthropic Claude LLM provider.

Requires the ``anthropic`` extra and ``ANTHROPIC_API_KEY`` env var.
"""

from __future__ import annotations

import logging
from collections.abc import Iterator
from typing import Any

from docchat.llm.base import LLMProvider, Message

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-20250514"


class AnthropicLLMProvider(LLMProvider):
    """Generate responses via the Anthropic Messages API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
        timeout: float = 120.0,
    ):
        try:
            import anthropic
        except ImportError as exc:
            raise ImportError(
                "anthropic package required: pip install docchat-rag[anthropic]"
            ) from exc

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self._client: Any = anthropic.Anthropic(api_key=api_key, timeout=timeout)

    def _kwargs(self, messages: list[Message]) -> dict[str, Any]:
        # System prompts are a top-level parameter, not a message role.
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        kwargs: dict[str, Any] = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "temperature": self.temperature,
            "messages": [m for m in messages if m["role"] != "system"],
        }
        if system:
            kwargs["system"] = system
        return kwargs

    def complete(self, messages: list[Message]) -> str:
        response = self._client.messages.create(**self._kwargs(messages))
        return "".join(
            block.text for block in response.content if getattr(block, "type", "") == "text"
        )

    def complete_stream(self, messages: list[Message]) -> Iterator[str]:
        with self._client.messages.stream(**self._kwargs(messages)) as stream:
            yield from stream.text_stream
