"""Embedding provider factory: registry, lazy import, settings mapping.

Each registry entry knows which client library the provider needs and which
``EmbeddingSettings`` fields its constructor accepts, so ``build_service``
and the CLI never special-case a provider by name.
"""

from __future__ import annotations

import importlib
import importlib.util
import logging
from dataclasses import dataclass

from docchat.config import EmbeddingSettings
from docchat.embeddings.base import EmbeddingProvider
from docchat.errors import ConfigurationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProviderEntry:
    module: str
    class_name: str
    settings_fields: tuple[str, ...]
    requires: str | None = None  # import name of an optional client library
    extra: str | None = None


_HTTP_FIELDS = ("model", "dimension", "timeout")

_PROVIDERS: dict[str, ProviderEntry] = {
    "ollama": ProviderEntry(
        "docchat.embeddings.ollama_provider", "OllamaEmbeddingProvider", _HTTP_FIELDS
    ),
    "openai": ProviderEntry(
        "docchat.embeddings.openai_provider",
        "OpenAIEmbeddingProvider",
        _HTTP_FIELDS,
        requires="openai",
        extra="openai",
    ),
    # The local model reports its own dimension.
    "huggingface": ProviderEntry(
        "docchat.embeddings.huggingface_provider",
        "HuggingFaceEmbeddingProvider",
        ("model",),
        requires="sentence_transformers",
        extra="huggingface",
    ),
    "huggingface_api": ProviderEntry(
        "docchat.embeddings.hf_inference_provider",
        "HFInferenceEmbeddingProvider",
        _HTTP_FIELDS,
    ),
}


def _entry(provider: str) -> ProviderEntry:
    try:
        return _PROVIDERS[provider.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown embedding provider '{provider}'. Available: {available_providers()}"
        ) from None


def get_embedding_provider(provider: str = "ollama", **kwargs) -> EmbeddingProvider:
    """Build an embedding provider by name.

    Args:
        provider: One of ``ollama``, ``openai``, ``huggingface``, ``huggingface_api``.
        **kwargs: Passed to the provider constructor.

    Raises:
        ConfigurationError: ``provider`` is not registered.
    """
    entry = _entry(provider)
    cls = getattr(importlib.import_module(entry.module), entry.class_name)
    instance = cls(**kwargs)
    logger.info("Using embedding provider %s", entry.class_name)
    return instance


def embedding_provider_from_settings(cfg: EmbeddingSettings) -> EmbeddingProvider:
    """Build the configured provider, passing only the fields it accepts."""
    entry = _entry(cfg.provider)
    kwargs = {name: getattr(cfg, name) for name in entry.settings_fields}
    return get_embedding_provider(cfg.provider, **kwargs)


def available_providers() -> list[str]:
    """Return names of registered embedding providers."""
    return list(_PROVIDERS)


def missing_dependency(provider: str) -> str | None:
    """Return the pip extra needed by ``provider``, or None if it can be built."""
    entry = _entry(provider)
    if entry.requires is None or importlib.util.find_spec(entry.requires) is not None:
        return None
    return entry.extra
