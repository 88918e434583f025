"""Lambda handler for document ingestion — triggered by S3 -> SQS.

Thin wrapper around DocumentChatService.process_stored. All business logic
lives in src/docchat/.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any
from urllib.parse import unquote_plus

from docchat.documents.storage import parse_storage_key
from docchat.errors import NotFound
from docchat.service import DocumentChatService, build_service

logger = logging.getLogger(__name__)
logger.setLevel(os.getenv("LOG_LEVEL", "INFO"))

# Initialize outside handler for Lambda warm-start reuse
_service: DocumentChatService | None = None


def _get_service() -> DocumentChatService:
    global _service
    if _service is None:
        _service = build_service()
    return _service


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Process S3 object-created events delivered through SQS."""
    service = _get_service()

    results = []
    for record in event.get("Records", []):
        body = json.loads(record["body"])
        for s3_record in body.get("Records", []):
            key = unquote_plus(s3_record["s3"]["object"]["key"])

            # Storage key convention: owner/document_id/filename.pdf
            try:
                owner_id, document_id, _ = parse_storage_key(key)
            except ValueError:
                logger.warning("Skipping object with unexpected key: %s", key)
                results.append({"key": key, "skipped": "unexpected key layout"})
                continue

            try:
                document = service.process_stored(owner_id, document_id)
            except NotFound:
                logger.warning("No document record for %s", key)
                results.append({"key": key, "skipped": "no document record"})
                continue

            results.append({
                "key": key,
                "document_id": document.id,
                "status": document.status.value,
                "total_chunks": document.total_chunks,
                "error_message": document.error_message,
            })

    return {"statusCode": 200, "results": results}
