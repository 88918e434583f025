"""Helpers for provider HTTP calls made with ``httpx``.

Ollama and the hosted HuggingFace endpoint are plain REST APIs. Both share
the same rule for which failures are retryable.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager

import httpx

from docchat.errors import TransientProviderError

_RETRYABLE_STATUS = {408, 429}


def is_retryable_status(status_code: int) -> bool:
    return status_code in _RETRYABLE_STATUS or status_code >= 500


def check_response(resp: httpx.Response) -> None:
    """Raise ``TransientProviderError`` for 408/429/5xx, ``HTTPStatusError`` otherwise."""
    if resp.is_success:
        return
    if is_retryable_status(resp.status_code):
        raise TransientProviderError(
            f"{resp.request.method} {resp.request.url.path} returned {resp.status_code}"
        )
    resp.raise_for_status()


@contextmanager
def transport_errors_as_transient() -> Iterator[None]:
    """Translate timeouts and connection errors into ``TransientProviderError``."""
    try:
        yield
    except httpx.TransportError as exc:
        raise TransientProviderError(f"{type(exc).__name__}: {exc}") from exc
