"""Tests for the Prometheus metrics.

prometheus-client uses a process-global registry and counters only go
up, so every test reads the value before the action and asserts on the
delta.
"""

from __future__ import annotations

from fastapi.testclient import TestClient
from prometheus_client import REGISTRY

from relying_party.main import create_app
from relying_party.services.token_exchange import ExchangeError, TokenExchanger
from tests.conftest import RecordingBroker, RecordingExchanger, make_settings
from tests.fake_broker import FakeBroker


def _get_sample(name: str, labels: dict | None = None) -> float:
    """Read a metric sample's current value from the global registry."""
    value = REGISTRY.get_sample_value(name, labels=labels or {})
    return value if value is not None else 0.0


def _outcomes(outcome: str) -> float:
    return _get_sample("rp_verify_outcomes_total", {"outcome": outcome})


def _exchanges(result: str) -> float:
    return _get_sample("rp_token_exchanges_total", {"result": result})


def test_request_counter_increments(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/health", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/health")
    assert _get_sample("http_requests_total", labels) - before == 1


def test_failure_page_counted_with_500(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/verify", "status_code": "500"}
    before = _get_sample("http_requests_total", labels)
    client.get("/verify", params={"error": "access_denied"})
    assert _get_sample("http_requests_total", labels) - before == 1


def test_request_duration_histogram_observes(client: TestClient) -> None:
    labels = {"method": "POST", "endpoint": "/verify"}
    before = _get_sample("http_request_duration_seconds_count", labels)
    client.post("/verify", data={"id_token": "abc.def.ghi"})
    assert _get_sample("http_request_duration_seconds_count", labels) - before == 1


def test_metrics_endpoint_not_self_instrumented(client: TestClient) -> None:
    labels = {"method": "GET", "endpoint": "/metrics", "status_code": "200"}
    before = _get_sample("http_requests_total", labels)
    client.get("/metrics")
    client.get("/metrics")
    assert _get_sample("http_requests_total", labels) == before


def test_verify_outcomes_counted_once_per_callback(client: TestClient) -> None:
    before = {o: _outcomes(o) for o in ("gotError", "invalidToken", "verified")}

    client.get("/verify", params={"error": "access_denied"})
    client.post("/verify", data={"id_token": "not-a-known-token"})
    client.post("/verify", data={"id_token": "abc.def.ghi"})
    client.get("/verify", params={"code": "C"})

    assert _outcomes("gotError") - before["gotError"] == 1
    assert _outcomes("invalidToken") - before["invalidToken"] == 1
    assert _outcomes("verified") - before["verified"] == 2


def test_failed_exchange_counts_as_got_error() -> None:
    exchanger = RecordingExchanger(error=ExchangeError("invalid_grant"))
    app = create_app(make_settings(), broker=RecordingBroker(), exchanger=exchanger)
    before = _outcomes("gotError")

    TestClient(app).get("/verify", params={"code": "C"})

    assert _outcomes("gotError") - before == 1


def test_token_exchange_results_counted() -> None:
    broker = FakeBroker()
    settings = make_settings()
    code = broker.register_code("header.payload.sig")
    app = create_app(
        settings,
        broker=RecordingBroker({"header.payload.sig": "u@example.com"}),
        exchanger=TokenExchanger(broker.http_client(), settings.token_endpoint),
    )
    client = TestClient(app)
    ok_before, error_before = _exchanges("ok"), _exchanges("error")

    client.get("/verify", params={"code": code})
    client.get("/verify", params={"code": code})  # codes are single use

    assert _exchanges("ok") - ok_before == 1
    assert _exchanges("error") - error_before == 1
