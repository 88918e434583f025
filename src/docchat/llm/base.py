"""Abstract base class for LLM providers."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Iterator

# A chat message: {"role": "system" | "user" | "assistant", "content": str}
Message = dict[str, str]


class LLMProvider(ABC):
    """Interface for chat-style LLM response generation.

    Decoding parameters (temperature, top_p, max_tokens) and the timeout are
    fixed per provider instance.
    """

    model: str = "unknown"

    @abstractmethod
    def complete(self, messages: list[Message]) -> str:
        """Generate a complete response.

        Args:
            messages: Chat messages, system message first.

        Returns:
            Generated text response.
        """

    @abstractmethod
    def complete_stream(self, messages: list[Message]) -> Iterator[str]:
        """Generate a response as text fragments, in emission order.

        The returned iterator owns the underlying connection; closing it
        (or exhausting it) releases the connection.
        """
