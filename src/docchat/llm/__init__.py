"""LLM providers — Ollama, OpenAI, Groq, Anthropic."""

from docchat.llm.base import LLMProvider, Message
from docchat.llm.factory import available_providers, get_llm_provider

__all__ = ["LLMProvider", "Message", "available_providers", "get_llm_provider"]
