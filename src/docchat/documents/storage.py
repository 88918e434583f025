"""Object storage for the raw uploaded PDFs — local filesystem or S3."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

from docchat.errors import ConfigurationError, NotFound

logger = logging.getLogger(__name__)

URL_EXPIRY_SECONDS = 3600


def storage_key(owner_id: str, document_id: str, filename: str) -> str:
    """Key layout: ``<owner>/<document_id>/<filename>``."""
    safe_name = Path(filename).name or "document.pdf"
    return f"{owner_id}/{document_id}/{safe_name}"


def parse_storage_key(key: str) -> tuple[str, str, str]:
    """Inverse of ``storage_key``; raises ``ValueError`` on other layouts."""
    parts = key.split("/")
    if len(parts) != 3 or not all(parts):
        raise ValueError(f"Unexpected storage key layout: {key!r}")
    owner_id, document_id, filename = parts
    return owner_id, document_id, filename


class ObjectStorage(ABC):
    """Interface for raw document storage."""

    @abstractmethod
    def put(self, key: str, data: bytes) -> str:
        """Store ``data`` under ``key`` and return the storage locator."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the stored bytes; raises ``NotFound`` when missing."""

    @abstractmethod
    def delete(self, key: str) -> None:
        """Remove the object (no error when it is already gone)."""

    @abstractmethod
    def url(self, key: str, expires_in: int = URL_EXPIRY_SECONDS) -> str:
        """Return a link for viewing the object; raises ``NotFound`` when missing.

        Links to remote storage stop working after ``expires_in`` seconds.
        """


class LocalObjectStorage(ObjectStorage):
    """Store files under a local directory."""

    def __init__(self, root: str | Path = "local_data/uploads"):
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if not path.is_relative_to(self.root.resolve()):
            raise ValueError(f"Storage key escapes the storage root: {key!r}")
        return path

    def put(self, key: str, data: bytes) -> str:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return key

    def get(self, key: str) -> bytes:
        path = self._path(key)
        if not path.exists():
            raise NotFound(f"Stored object not found: {key}")
        return path.read_bytes()

    def delete(self, key: str) -> None:
        self._path(key).unlink(missing_ok=True)

    def url(self, key: str, expires_in: int = URL_EXPIRY_SECONDS) -> str:
        path = self._path(key)
        if not path.exists():
            raise NotFound(f"Stored object not found: {key}")
        return path.as_uri()


class S3ObjectStorage(ObjectStorage):
    """Store files in an S3 bucket. Requires the ``aws`` extra."""

    def __init__(self, bucket: str, region: str | None = None, client: Any = None):
        if client is None:
            try:
                import boto3
            except ImportError as exc:
                raise ImportError("boto3 required: pip install docchat-rag[aws]") from exc
            client = boto3.client("s3", region_name=region)

        self.bucket = bucket
        self._client = client

    def put(self, key: str, data: bytes) -> str:
        self._client.put_object(
            Bucket=self.bucket,
            Key=key,
            Body=data,
            ContentType="application/pdf",
        )
        return key

    def get(self, key: str) -> bytes:
        try:
            response = self._client.get_object(Bucket=self.bucket, Key=key)
        except self._client.exceptions.NoSuchKey as exc:
            raise NotFound(f"Stored object not found: s3://{self.bucket}/{key}") from exc
        return response["Body"].read()

    def delete(self, key: str) -> None:
        self._client.delete_object(Bucket=self.bucket, Key=key)

    def url(self, key: str, expires_in: int = URL_EXPIRY_SECONDS) -> str:
        # Presigning is local; a missing key only surfaces when the link is used.
        return self._client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": self.bucket, "Key": key},
            ExpiresIn=expires_in,
        )


def get_object_storage(
    backend: str = "local",
    path: str = "local_data/uploads",
    bucket: str | None = None,
    region: str | None = None,
) -> ObjectStorage:
    key = backend.lower()
    if key == "local":
        return LocalObjectStorage(path)
    if key == "s3":
        if not bucket:
            raise ConfigurationError("storage.bucket is required for the s3 backend")
        return S3ObjectStorage(bucket=bucket, region=region)
    raise ConfigurationError(f"Unknown storage backend '{backend}'. Available: ['local', 's3']")
