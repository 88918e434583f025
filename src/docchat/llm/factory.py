"""LLM provider factory: registry, lazy import, settings mapping."""

from __future__ import annotations

import importlib
import importlib.util
import logging
from dataclasses import dataclass

from docchat.config import LLMSettings
from docchat.errors import ConfigurationError
from docchat.llm.base import LLMProvider

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEntry:
    module: str
    class_name: str
    settings_fields: tuple[str, ...]
    requires: str | None = None
    extra: str | None = None


_SAMPLING_FIELDS = ("model", "temperature", "top_p", "max_tokens", "timeout")

_PROVIDERS: dict[str, ProviderEntry] = {
    "ollama": ProviderEntry("docchat.llm.ollama_provider", "OllamaLLMProvider", _SAMPLING_FIELDS),
    "openai": ProviderEntry(
        "docchat.llm.openai_provider",
        "OpenAILLMProvider",
        _SAMPLING_FIELDS,
        requires="openai",
        extra="openai",
    ),
    # Groq speaks the OpenAI protocol through the same SDK.
    "groq": ProviderEntry(
        "docchat.llm.openai_provider",
        "GroqLLMProvider",
        _SAMPLING_FIELDS,
        requires="openai",
        extra="openai",
    ),
    # Anthropic rejects temperature and top_p together.
    "anthropic": ProviderEntry(
        "docchat.llm.anthropic_provider",
        "AnthropicLLMProvider",
        ("model", "temperature", "max_tokens", "timeout"),
        requires="anthropic",
        extra="anthropic",
    ),
}


def _entry(provider: str) -> ProviderEntry:
    try:
        return _PROVIDERS[provider.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown LLM provider '{provider}'. Available: {available_providers()}"
        ) from None


def get_llm_provider(provider: str = "ollama", **kwargs) -> LLMProvider:
    """Build an LLM provider by name.

    Args:
        provider: One of ``ollama``, ``openai``, ``groq``, ``anthropic``.
        **kwargs: Passed to the provider constructor.
    """
    entry = _entry(provider)
    cls = getattr(importlib.import_module(entry.module), entry.class_name)
    return cls(**kwargs)


def llm_provider_from_settings(cfg: LLMSettings) -> LLMProvider:
    entry = _entry(cfg.provider)
    provider = get_llm_provider(
        cfg.provider, **{name: getattr(cfg, name) for name in entry.settings_fields}
    )
    logger.info("Using LLM provider %s (%s)", entry.class_name, cfg.model)
    return provider


def available_providers() -> list[str]:
    """Return names of registered LLM providers."""
    return list(_PROVIDERS)


def missing_dependency(provider: str) -> str | None:
    """Return the pip extra needed by ``provider``, or None if it can be built."""
    entry = _entry(provider)
    if entry.requires is None or importlib.util.find_spec(entry.requires) is not None:
        return None
    return entry.extra
