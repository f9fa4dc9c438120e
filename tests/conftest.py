from __future__ import annotations

import sys
from dataclasses import replace
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from relying_party.core.config import Settings
from relying_party.core.events import EventEmitter, RPEvent
from relying_party.main import create_app
from relying_party.services.broker_client import AuthStartError, TokenVerifyError
from relying_party.services.token_exchange import ExchangeError

# Ensure repo root is on sys.path so `import relying_party` works under pytest.
ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

BROKER_URL = "http://broker.test"
REDIRECT_URI = "http://rp.test/verify"
AUTH_URL = f"{BROKER_URL}/auth?login_hint=user%40example.com"


def make_settings(**overrides: object) -> Settings:
    base = Settings(
        app_env="test",
        log_level="info",
        log_json=False,
        host="127.0.0.1",
        port=0,
        broker_url=BROKER_URL,
        redirect_uri=REDIRECT_URI,
        token_endpoint=f"{BROKER_URL}/token",
        broker_timeout=5.0,
    )
    return replace(base, **overrides)  # type: ignore[arg-type]


# ---------------------------------------------------------------------------
# Recording fakes for the relying party's collaborators
# ---------------------------------------------------------------------------


class RecordingBroker:
    """BrokerClient fake: records every call, accepts exactly the tokens in
    ``identities`` and rejects everything else (including "")."""

    def __init__(
        self,
        identities: dict[str, str] | None = None,
        *,
        auth_url: str = AUTH_URL,
        auth_error: Exception | None = None,
    ) -> None:
        self.identities = dict(identities or {})
        self.auth_url = auth_url
        self.auth_error = auth_error
        self.authenticate_calls: list[str] = []
        self.verify_calls: list[str] = []
        self.close_calls = 0

    @property
    def redirect_uri(self) -> str:
        return REDIRECT_URI

    async def authenticate(self, email: str) -> str:
        self.authenticate_calls.append(email)
        if self.auth_error is not None:
            raise self.auth_error
        return self.auth_url

    async def verify(self, token: str) -> str:
        self.verify_calls.append(token)
        if token not in self.identities:
            raise TokenVerifyError("token rejected by fake broker")
        return self.identities[token]

    async def aclose(self) -> None:
        self.close_calls += 1


class RecordingExchanger:
    def __init__(self, id_token: str = "", error: ExchangeError | None = None) -> None:
        self.id_token = id_token
        self.error = error
        self.calls: list[tuple[str, str]] = []

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        self.calls.append((code, redirect_uri))
        if self.error is not None:
            raise self.error
        return self.id_token


def record_events(emitter: EventEmitter) -> dict[str, list]:
    """Subscribe to every outcome event; returns event name → payloads."""
    seen: dict[str, list] = {event.value: [] for event in RPEvent}
    for event in RPEvent:
        emitter.on(event, seen[event.value].append)
    return seen


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def settings() -> Settings:
    return make_settings()


@pytest.fixture
def broker() -> RecordingBroker:
    return RecordingBroker(
        {"abc.def.ghi": "user@example.com", "xyz": "a@b.com"},
    )


@pytest.fixture
def exchanger() -> RecordingExchanger:
    return RecordingExchanger(id_token="xyz")


@pytest.fixture
def emitter() -> EventEmitter:
    return EventEmitter()


@pytest.fixture
def app(
    settings: Settings,
    broker: RecordingBroker,
    exchanger: RecordingExchanger,
    emitter: EventEmitter,
) -> FastAPI:
    return create_app(settings, broker=broker, exchanger=exchanger, emitter=emitter)


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, follow_redirects=False)


@pytest.fixture
def failing_broker() -> RecordingBroker:
    return RecordingBroker(auth_error=AuthStartError("broker unreachable"))
