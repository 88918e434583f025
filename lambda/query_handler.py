"""Lambda handler for chat queries — triggered by API Gateway.

Thin wrapper around DocumentChatService. All business logic lives in
src/docchat/.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any

from docchat.errors import DocChatError, EmbeddingUnavailable, ModelUnavailable, NotFound
from docchat.pipeline.schemas import ChatTurn
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


def _response(status_code: int, payload: dict[str, Any]) -> dict[str, Any]:
    return {
        "statusCode": status_code,
        "headers": {"Content-Type": "application/json"},
        "body": json.dumps(payload),
    }


def _owner_id(event: dict[str, Any]) -> str | None:
    claims = (
        (event.get("requestContext") or {}).get("authorizer", {}).get("claims", {})
    )
    return claims.get("sub")


def handler(event: dict[str, Any], context: Any) -> dict[str, Any]:
    """Handle API Gateway request — parse query, answer, return JSON."""
    owner_id = _owner_id(event)
    if not owner_id:
        return _response(401, {"error": "Unauthorized"})

    try:
        body = json.loads(event.get("body") or "{}")
    except (json.JSONDecodeError, TypeError):
        body = {}
    if not isinstance(body, dict):
        body = {}

    query = (body.get("query") or "").strip()
    if not query:
        return _response(400, {"error": "Missing 'query' field"})

    try:
        history = [ChatTurn.from_dict(t) for t in body.get("history") or []]
    except (ValueError, AttributeError) as exc:
        return _response(400, {"error": f"Invalid history: {exc}"})

    try:
        response = _get_service().retrieve_and_answer(
            owner_id,
            query,
            document_ids=body.get("document_ids") or None,
            history=history,
        )
    except NotFound as exc:
        return _response(404, {"error": str(exc)})
    except (EmbeddingUnavailable, ModelUnavailable) as exc:
        logger.error("Chat failed: %s", exc)
        return _response(503, {"error": str(exc)})
    except DocChatError as exc:
        logger.error("Chat failed: %s", exc)
        return _response(500, {"error": str(exc)})

    return _response(200, response.to_dict())
