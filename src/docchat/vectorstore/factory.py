"""Vector store factory: backend registry, lazy import, settings mapping."""

from __future__ import annotations

import importlib
import importlib.util
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from docchat.config import VectorStoreSettings
from docchat.errors import ConfigurationError
from docchat.vectorstore.base import VectorStore

logger = logging.getLogger(__name__)


def _faiss_kwargs(cfg: VectorStoreSettings, dimension: int) -> dict[str, Any]:
    return {"dimension": dimension, "path": cfg.path}


def _qdrant_kwargs(cfg: VectorStoreSettings, dimension: int) -> dict[str, Any]:
    # A server URL takes precedence over an embedded on-disk store.
    return {
        "collection_name": cfg.collection,
        "dimension": dimension,
        "url": cfg.url,
        "api_key": cfg.api_key,
        "path": None if cfg.url else cfg.path,
    }


@dataclass(frozen=True)
class StoreEntry:
    module: str
    class_name: str
    requires: str
    settings_kwargs: Callable[[VectorStoreSettings, int], dict[str, Any]]


_STORES: dict[str, StoreEntry] = {
    "faiss": StoreEntry("docchat.vectorstore.faiss_store", "FAISSStore", "faiss", _faiss_kwargs),
    "qdrant": StoreEntry(
        "docchat.vectorstore.qdrant_store", "QdrantStore", "qdrant_client", _qdrant_kwargs
    ),
}


def _entry(backend: str) -> StoreEntry:
    try:
        return _STORES[backend.lower()]
    except KeyError:
        raise ConfigurationError(
            f"Unknown vector store '{backend}'. Available: {available_stores()}"
        ) from None


def get_vector_store(provider: str = "faiss", **kwargs) -> VectorStore:
    """Build a vector store by name.

    Args:
        provider: One of ``faiss``, ``qdrant``.
        **kwargs: Passed to the store constructor.
    """
    entry = _entry(provider)
    cls = getattr(importlib.import_module(entry.module), entry.class_name)
    return cls(**kwargs)


def vector_store_from_settings(cfg: VectorStoreSettings, dimension: int) -> VectorStore:
    """Build the configured backend for vectors of ``dimension`` floats."""
    entry = _entry(cfg.backend)
    store = get_vector_store(cfg.backend, **entry.settings_kwargs(cfg, dimension))
    logger.info("Using vector store %s (dim=%d)", entry.class_name, dimension)
    return store


def available_stores() -> list[str]:
    """Return names of registered vector stores."""
    return list(_STORES)


def missing_dependency(backend: str) -> str | None:
    """Return the pip extra needed by ``backend``, or None if it can be built."""
    if importlib.util.find_spec(_entry(backend).requires) is None:
        return backend.lower()
    return None
