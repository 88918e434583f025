"""Exception taxonomy shared by ingestion, retrieval and chat."""

from __future__ import annotations


class DocChatError(Exception):
    """Base class for all errors raised by the core."""


class ConfigurationError(DocChatError):
    """Unknown provider, missing credentials, or mismatched embedding dimension."""


class InvalidUpload(DocChatError):
    """The uploaded file was rejected before a document record was created."""


class ParseFailure(DocChatError):
    """The PDF could not be parsed into pages of text."""


class NoExtractableText(ParseFailure):
    """The PDF parsed but yielded no text (scanned or image-only pages)."""


class TransientProviderError(DocChatError):
    """A provider call failed in a way worth retrying (timeout, 429, 5xx)."""


class EmbeddingUnavailable(DocChatError):
    """The embedding service failed, after retries where applicable."""


class VectorStoreFailure(DocChatError):
    """A vector store insert, search or delete failed."""


class DocumentStoreFailure(DocChatError):
    """Reading or writing document records failed."""


class ModelUnavailable(DocChatError):
    """The language model call failed or broke off mid-stream."""


class NotFound(DocChatError):
    """The document does not exist or is not owned by the caller."""


class StatusTransitionError(DocChatError):
    """A document was asked to leave a terminal status."""
