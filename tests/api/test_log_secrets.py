"""id_tokens and authorization codes must never appear in the fixture's logs.

Both are bearer credentials.  These tests run the callback paths with
logging wide open and search every record from the relying_party loggers.
"""

from __future__ import annotations

import logging

import pytest
from fastapi.testclient import TestClient

from relying_party.main import create_app
from relying_party.services.token_exchange import ExchangeError
from tests.conftest import RecordingBroker, RecordingExchanger, make_settings

SECRET_TOKEN = "eyJhbGciOiJSUzI1NiJ9.c2VjcmV0LXBheWxvYWQ.c2lnbmF0dXJl"
SECRET_CODE = "c0de-that-must-not-leak"


def _rp_log_text(caplog: pytest.LogCaptureFixture) -> str:
    return " ".join(
        r.getMessage() for r in caplog.records if r.name.startswith("relying_party")
    )


def _client(broker: RecordingBroker, exchanger: RecordingExchanger) -> TestClient:
    app = create_app(make_settings(), broker=broker, exchanger=exchanger)
    return TestClient(app)


@pytest.mark.parametrize("identities", [{SECRET_TOKEN: "u@example.com"}, {}])
def test_implicit_token_not_logged(
    identities: dict, caplog: pytest.LogCaptureFixture
) -> None:
    client = _client(RecordingBroker(identities), RecordingExchanger())

    with caplog.at_level(logging.DEBUG, logger="relying_party"):
        client.post("/verify", data={"id_token": SECRET_TOKEN})

    assert SECRET_TOKEN not in _rp_log_text(caplog), "id_token found in log output!"


def test_code_and_exchanged_token_not_logged(caplog: pytest.LogCaptureFixture) -> None:
    client = _client(
        RecordingBroker({SECRET_TOKEN: "u@example.com"}),
        RecordingExchanger(id_token=SECRET_TOKEN),
    )

    with caplog.at_level(logging.DEBUG, logger="relying_party"):
        client.get("/verify", params={"code": SECRET_CODE})

    text = _rp_log_text(caplog)
    assert SECRET_CODE not in text, "authorization code found in log output!"
    assert SECRET_TOKEN not in text, "id_token found in log output!"


def test_failed_exchange_does_not_log_code(caplog: pytest.LogCaptureFixture) -> None:
    client = _client(
        RecordingBroker(),
        RecordingExchanger(error=ExchangeError("invalid_grant", "unknown code")),
    )

    with caplog.at_level(logging.DEBUG, logger="relying_party"):
        client.get("/verify", params={"code": SECRET_CODE})

    assert SECRET_CODE not in _rp_log_text(caplog)
