"""OpenAI LLM provider — GPT-4o and OpenAI-compatible endpoints (Groq).

Requires the ``openai`` extra and ``OPENAI_API_KEY`` env var (``GROQ_API_KEY``
for Groq).
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from typing import Any

from docchat.llm.base import LLMProvider, Message

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gpt-4o"

GROQ_BASE_URL = "https://api.groq.com/openai/v1"
GROQ_DEFAULT_MODEL = "llama-3.3-70b-versatile"


class OpenAILLMProvider(LLMProvider):
    """Generate responses via the OpenAI Chat Completions API."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str | None = None,
        max_tokens: int = 4096,
        temperature: float = 0.3,
        top_p: float = 0.9,
        timeout: float = 120.0,
    ):
        try:
            import openai
        except ImportError as exc:
            raise ImportError(
                "openai package required: pip install docchat-rag[openai]"
            ) from exc

        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.top_p = top_p

        kwargs: dict[str, Any] = {"timeout": timeout}
        if api_key:
            kwargs["api_key"] = api_key
        if base_url:
            kwargs["base_url"] = base_url

        self._client: Any = openai.OpenAI(**kwargs)

    def _request(self, messages: list[Message], **extra: Any) -> Any:
        return self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            top_p=self.top_p,
            **extra,
        )

    def complete(self, messages: list[Message]) -> str:
        response = self._request(messages)
        return response.choices[0].message.content or ""

    def complete_stream(self, messages: list[Message]) -> Iterator[str]:
        with self._request(messages, stream=True) as stream:
            for chunk in stream:
                if not chunk.choices:
                    continue
                content = chunk.choices[0].delta.content
                if content:
                    yield content


class GroqLLMProvider(OpenAILLMProvider):
    """Groq's OpenAI-compatible endpoint."""

    def __init__(
        self,
        model: str = GROQ_DEFAULT_MODEL,
        api_key: str | None = None,
        base_url: str = GROQ_BASE_URL,
        **kwargs: Any,
    ):
        super().__init__(
            model=model,
            api_key=api_key or os.getenv("GROQ_API_KEY"),
            base_url=base_url,
            **kwargs,
        )
