"""Tests for Lambda handlers — ingest and query.

The ``lambda/`` directory uses a Python reserved word, so we import modules
via importlib and set the cached service directly on the loaded module objects.
"""

from __future__ import annotations

import importlib.util
import json
from pathlib import Path
from types import ModuleType
from unittest.mock import MagicMock

import pytest

from docchat.errors import ModelUnavailable, VectorStoreFailure
from docchat.pipeline.prompts import NO_RESULTS_ANSWER

from conftest import PDF_BYTES

PHOTOSYNTHESIS_QUERY = "How does photosynthesis use chlorophyll?"


# ---------------------------------------------------------------------------
# Module loading helpers (``lambda`` is a reserved keyword)
# ---------------------------------------------------------------------------


def _load_handler(name: str) -> ModuleType:
    """Import lambda/<name>.py via importlib."""
    lambda_dir = Path(__file__).resolve().parent.parent / "lambda"
    spec = importlib.util.spec_from_file_location(name, lambda_dir / f"{name}.py")
    mod = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(mod)
    return mod


@pytest.fixture
def ingest_handler(service) -> ModuleType:
    mod = _load_handler("ingest_handler")
    mod._service = service
    return mod


@pytest.fixture
def query_handler(service) -> ModuleType:
    mod = _load_handler("query_handler")
    mod._service = service
    return mod


# ---------------------------------------------------------------------------
# Ingest Handler Tests
# ---------------------------------------------------------------------------


def _s3_sqs_event(*keys: str) -> dict:
    """Build a minimal SQS event wrapping one S3 notification per key."""
    return {
        "Records": [
            {
                "body": json.dumps({
                    "Records": [
                        {"s3": {"bucket": {"name": "docchat-uploads"}, "object": {"key": key}}}
                        for key in keys
                    ]
                })
            }
        ]
    }


class TestIngestHandler:
    def test_processes_uploaded_document(self, ingest_handler, service):
        document = service.upload("alice", "biology.pdf", PDF_BYTES)

        result = ingest_handler.handler(_s3_sqs_event(document.storage_path), None)

        assert result["statusCode"] == 200
        assert result["results"] == [{
            "key": document.storage_path,
            "document_id": document.id,
            "status": "ready",
            "total_chunks": 6,
            "error_message": None,
        }]
        assert service.get_document("alice", document.id).status.value == "ready"

    def test_url_encoded_key(self, ingest_handler, service):
        document = service.upload("alice", "cell biology.pdf", PDF_BYTES)
        encoded = document.storage_path.replace(" ", "+")

        result = ingest_handler.handler(_s3_sqs_event(encoded), None)

        assert result["results"][0]["status"] == "ready"

    def test_skips_unexpected_layout(self, ingest_handler):
        result = ingest_handler.handler(_s3_sqs_event("stray-file.pdf"), None)
        assert result["results"] == [{"key": "stray-file.pdf", "skipped": "unexpected key layout"}]

    def test_skips_unknown_document(self, ingest_handler):
        result = ingest_handler.handler(_s3_sqs_event("alice/missing/notes.pdf"), None)
        assert result["results"][0]["skipped"] == "no document record"

    def test_failed_ingestion_reported(self, ingest_handler, service, storage):
        document = service.upload("alice", "biology.pdf", PDF_BYTES)
        storage.delete(document.storage_path)

        result = ingest_handler.handler(_s3_sqs_event(document.storage_path), None)

        assert result["results"][0]["status"] == "error"
        assert result["results"][0]["error_message"]

    def test_empty_event(self, ingest_handler):
        result = ingest_handler.handler({"Records": []}, None)
        assert result == {"statusCode": 200, "results": []}

    def test_service_built_once(self):
        mod = _load_handler("ingest_handler")
        mod.build_service = MagicMock()

        mod.handler({"Records": []}, None)
        mod.handler({"Records": []}, None)

        mod.build_service.assert_called_once_with()


# ---------------------------------------------------------------------------
# Query Handler Tests
# ---------------------------------------------------------------------------


def _apigw_event(body: dict | None = None, owner: str | None = "alice") -> dict:
    """Build a minimal API Gateway event with Cognito claims."""
    event: dict = {
        "body": json.dumps(body) if body is not None else None,
        "httpMethod": "POST",
        "path": "/chat",
    }
    if owner:
        event["requestContext"] = {"authorizer": {"claims": {"sub": owner}}}
    return event


class TestQueryHandler:
    @pytest.fixture(autouse=True)
    def _ingest(self, service):
        service.ingest("alice", "biology.pdf", PDF_BYTES)

    def test_valid_request(self, query_handler):
        result = query_handler.handler(_apigw_event({"query": PHOTOSYNTHESIS_QUERY}), None)

        assert result["statusCode"] == 200
        assert result["headers"]["Content-Type"] == "application/json"
        body = json.loads(result["body"])
        assert "chlorophyll" in body["answer"]
        assert body["model"] == "mock-llm"
        assert body["sources"][0]["filename"] == "biology.pdf"
        assert body["sources"][0]["page_number"] == 2

    def test_no_grounding(self, query_handler):
        result = query_handler.handler(_apigw_event({"query": "What is the capital of Mars?"}), None)

        body = json.loads(result["body"])
        assert body["answer"] == NO_RESULTS_ANSWER
        assert body["sources"] == []

    def test_other_owner_sees_nothing(self, query_handler):
        result = query_handler.handler(
            _apigw_event({"query": PHOTOSYNTHESIS_QUERY}, owner="bob"), None
        )
        assert json.loads(result["body"])["sources"] == []

    def test_unauthenticated(self, query_handler):
        result = query_handler.handler(_apigw_event({"query": "q"}, owner=None), None)
        assert result["statusCode"] == 401

    def test_missing_query(self, query_handler):
        result = query_handler.handler(_apigw_event({"document_ids": []}), None)

        assert result["statusCode"] == 400
        assert "query" in json.loads(result["body"])["error"]

    def test_invalid_json(self, query_handler):
        event = _apigw_event()
        event["body"] = "not-valid-json{{{"
        assert query_handler.handler(event, None)["statusCode"] == 400

    def test_invalid_history(self, query_handler):
        event = _apigw_event({"query": "q", "history": [{"role": "system", "content": "x"}]})
        result = query_handler.handler(event, None)

        assert result["statusCode"] == 400
        assert "Invalid history" in json.loads(result["body"])["error"]

    def test_history_and_filter_forwarded(self, query_handler, llm):
        event = _apigw_event({
            "query": PHOTOSYNTHESIS_QUERY,
            "document_ids": ["not-a-document"],
            "history": [{"role": "user", "content": "hi"}],
        })

        body = json.loads(query_handler.handler(event, None)["body"])

        assert body["answer"] == NO_RESULTS_ANSWER
        assert llm.calls == []

    def test_model_outage_is_503(self, query_handler):
        query_handler._service = MagicMock()
        query_handler._service.retrieve_and_answer.side_effect = ModelUnavailable("timeout")

        result = query_handler.handler(_apigw_event({"query": "q"}), None)

        assert result["statusCode"] == 503

    def test_store_failure_is_500(self, query_handler):
        query_handler._service = MagicMock()
        query_handler._service.retrieve_and_answer.side_effect = VectorStoreFailure("down")

        result = query_handler.handler(_apigw_event({"query": "q"}), None)

        assert result["statusCode"] == 500
        assert json.loads(result["body"]) == {"error": "down"}
