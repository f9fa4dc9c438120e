"""Liveness endpoint.

Test harnesses poll /health after start() to know the fixture is serving.
It also reports the redirect URI the broker client registers, which tells
apart several relying parties running side by side.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends

from relying_party.api.dependencies import get_broker
from relying_party.services.broker_client import BrokerClient

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(broker: Annotated[BrokerClient, Depends(get_broker)]) -> dict:
    return {"status": "ok", "redirect_uri": broker.redirect_uri}
