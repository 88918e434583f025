"""Ollama LLM provider — local-first, no API keys.

Supports Llama, Mistral, Qwen and any chat model available via Ollama.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterator

import httpx

from docchat.httputil import check_response, transport_errors_as_transient
from docchat.llm.base import LLMProvider, Message

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "llama3.1:8b"
DEFAULT_BASE_URL = "http://localhost:11434"


class OllamaLLMProvider(LLMProvider):
    """Generate responses via a local Ollama server's ``/api/chat``."""

    def __init__(
        self,
        model: str = DEFAULT_MODEL,
        base_url: str = DEFAULT_BASE_URL,
        temperature: float = 0.3,
        top_p: float = 0.9,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.temperature = temperature
        self.top_p = top_p
        self.max_tokens = max_tokens
        self._client = httpx.Client(base_url=self.base_url, timeout=timeout, transport=transport)

    def _payload(self, messages: list[Message], stream: bool) -> dict:
        return {
            "model": self.model,
            "messages": messages,
            "stream": stream,
            "options": {
                "temperature": self.temperature,
                "top_p": self.top_p,
                "num_predict": self.max_tokens,
            },
        }

    def complete(self, messages: list[Message]) -> str:
        with transport_errors_as_transient():
            resp = self._client.post("/api/chat", json=self._payload(messages, stream=False))
        check_response(resp)
        return resp.json().get("message", {}).get("content", "")

    def complete_stream(self, messages: list[Message]) -> Iterator[str]:
        """Yield content fragments from Ollama's newline-delimited JSON stream."""
        with transport_errors_as_transient():
            with self._client.stream(
                "POST", "/api/chat", json=self._payload(messages, stream=True)
            ) as resp:
                check_response(resp)
                for line in resp.iter_lines():
                    if not line:
                        continue
                    data = json.loads(line)
                    if data.get("error"):
                        raise RuntimeError(f"Ollama stream error: {data['error']}")
                    content = data.get("message", {}).get("content")
                    if content:
                        yield content
                    if data.get("done"):
                        break
