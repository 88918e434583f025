"""Application settings loaded from YAML with environment variable overrides."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

ENV_PREFIX = "DOCCHAT_"

# ---------------------------------------------------------------------------
# Settings sections
# ---------------------------------------------------------------------------


class ChunkingSettings(BaseModel):
    chunk_size: int = 800
    chunk_overlap: int = 200
    min_page_chars: int = 30
    separators: list[str] = Field(
        default_factory=lambda: ["\n\n", "\n", ". ", "! ", "? ", "; ", ", ", " ", ""]
    )


class EmbeddingSettings(BaseModel):
    provider: str = "ollama"
    model: str = "nomic-embed-text"
    dimension: int = 768
    max_chars: int = 8000
    batch_size: int = 5
    batch_delay: float = 0.3
    max_attempts: int = 4
    backoff_initial: float = 0.5
    backoff_max: float = 8.0
    timeout: float = 30.0


class VectorStoreSettings(BaseModel):
    backend: str = "faiss"
    path: str | None = "local_data/vectorstore"
    collection: str = "document_chunks"
    url: str | None = None
    api_key: str | None = None


class LLMSettings(BaseModel):
    provider: str = "ollama"
    model: str = "llama3.1:8b"
    temperature: float = 0.3
    top_p: float = 0.9
    max_tokens: int = 4096
    timeout: float = 120.0


class RetrievalSettings(BaseModel):
    top_k: int = 8
    similarity_threshold: float = 0.3


class AnswerSettings(BaseModel):
    history_turns: int = 6
    max_sources: int = 6
    excerpt_chars: int = 150
    max_context_tokens: int | None = 6000
    tokenizer: str = "cl100k_base"


class IngestionSettings(BaseModel):
    insert_batch_size: int = 50
    max_file_size_mb: int = 50
    max_pages: int = 500


class DatabaseSettings(BaseModel):
    url: str = "sqlite:///local_data/docchat.db"
    echo: bool = False


class StorageSettings(BaseModel):
    backend: str = "local"
    path: str = "local_data/uploads"
    bucket: str | None = None
    region: str | None = None


class LoggingSettings(BaseModel):
    level: str = "WARNING"


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    """Root settings; ``DOCCHAT_<SECTION>__<FIELD>`` env vars override YAML."""

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    chunking: ChunkingSettings = Field(default_factory=ChunkingSettings)
    embedding: EmbeddingSettings = Field(default_factory=EmbeddingSettings)
    vectorstore: VectorStoreSettings = Field(default_factory=VectorStoreSettings)
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    answer: AnswerSettings = Field(default_factory=AnswerSettings)
    ingestion: IngestionSettings = Field(default_factory=IngestionSettings)
    database: DatabaseSettings = Field(default_factory=DatabaseSettings)
    storage: StorageSettings = Field(default_factory=StorageSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs and rank below the environment.
        return env_settings, init_settings


def _find_settings_file() -> Path | None:
    """Walk up from cwd looking for settings.yaml."""
    profile = os.getenv(f"{ENV_PREFIX}PROFILE", "")
    names = [f"settings-{profile}.yaml", "settings.yaml"] if profile else ["settings.yaml"]

    cwd = Path.cwd()
    for parent in [cwd, *cwd.parents]:
        for name in names:
            candidate = parent / name
            if candidate.exists():
                return candidate
    return None


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from YAML file, falling back to defaults."""
    settings_path = Path(path) if path else _find_settings_file()

    raw: dict[str, Any] = {}
    if settings_path is not None:
        with open(settings_path, encoding="utf-8") as fh:
            raw = yaml.safe_load(fh) or {}

    return Settings(**raw)
