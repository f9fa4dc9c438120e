"""Per-app collaborators, read from app.state.

create_app() stores the broker client, the code exchanger and the event
emitter on app.state, so two relying parties in one process never share
them.  Routes get them through these dependencies, and tests can swap
them with app.dependency_overrides.
"""

from __future__ import annotations

from fastapi import Request

from relying_party.core.events import EventEmitter
from relying_party.services.broker_client import BrokerClient
from relying_party.services.token_exchange import CodeExchanger


def get_broker(request: Request) -> BrokerClient:
    return request.app.state.broker


def get_exchanger(request: Request) -> CodeExchanger:
    return request.app.state.exchanger


def get_emitter(request: Request) -> EventEmitter:
    return request.app.state.emitter
