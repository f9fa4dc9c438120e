"""Tests for the request context middleware.

Verifies that every response gets an X-Request-ID header (generated or
echoed) and that the ID reaches log records emitted while handling the
request.
"""

from __future__ import annotations

import io
import json
import logging
import uuid
from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from relying_party.core.logging import setup_logging
from relying_party.main import create_app
from tests.conftest import RecordingBroker, RecordingExchanger, make_settings


def test_request_id_generated_when_not_provided(client: TestClient) -> None:
    resp = client.get("/health")
    req_id = resp.headers.get("x-request-id")
    assert req_id is not None
    uuid.UUID(req_id)  # raises ValueError if invalid


def test_request_id_echoed_when_provided(client: TestClient) -> None:
    custom_id = "my-custom-request-id-123"
    resp = client.get("/health", headers={"X-Request-ID": custom_id})
    assert resp.headers.get("x-request-id") == custom_id


def test_request_id_present_on_failure_responses(client: TestClient) -> None:
    resp = client.get("/verify", params={"error": "access_denied"})
    assert resp.status_code == 500
    assert resp.headers.get("x-request-id") is not None


def test_request_id_attached_to_handler_logs(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="relying_party"):
        client.get(
            "/verify",
            params={"error": "access_denied"},
            headers={"X-Request-ID": "corr-42"},
        )

    handler_records = [
        r for r in caplog.records if r.name == "relying_party.services.verification"
    ]
    assert handler_records
    assert all(getattr(r, "request_id", None) == "corr-42" for r in handler_records)


def test_summary_line_carries_structured_fields(
    client: TestClient, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.INFO, logger="relying_party"):
        client.get("/health")

    summary = [
        r
        for r in caplog.records
        if r.name == "relying_party.middleware.request_context"
    ]
    assert len(summary) == 1
    assert summary[0].path == "/health"  # type: ignore[attr-defined]
    assert summary[0].status_code == 200  # type: ignore[attr-defined]
    assert summary[0].duration_ms >= 0  # type: ignore[attr-defined]



@pytest.fixture
def restore_root_logging() -> Iterator[None]:
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


@pytest.mark.usefixtures("restore_root_logging")
def test_request_id_survives_logging_setup_after_app_creation() -> None:
    app = create_app(
        make_settings(), broker=RecordingBroker(), exchanger=RecordingExchanger()
    )
    setup_logging("info", json_format=True)
    stream = io.StringIO()
    logging.getLogger().handlers[0].setStream(stream)  # type: ignore[attr-defined]

    TestClient(app).get(
        "/verify", params={"error": "x"}, headers={"X-Request-ID": "corr-1"}
    )

    lines = [json.loads(line) for line in stream.getvalue().splitlines()]
    handler_lines = [
        line
        for line in lines
        if line["logger"] == "relying_party.services.verification"
    ]
    assert handler_lines
    assert all(line["request_id"] == "corr-1" for line in handler_lines)
