from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from relying_party.api.health import router as health_router
from relying_party.api.login import router as login_router
from relying_party.api.metrics_endpoint import router as metrics_router
from relying_party.api.verify import router as verify_router
from relying_party.core.config import SETTINGS, Settings
from relying_party.core.events import EventEmitter
from relying_party.middleware.metrics import MetricsMiddleware
from relying_party.middleware.request_context import (
    RequestContextMiddleware,
    install_request_context_filter,
)
from relying_party.services.broker_client import BrokerClient
from relying_party.services.portier_client import PortierClient
from relying_party.services.token_exchange import CodeExchanger, TokenExchanger

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    yield
    # Runs after uvicorn has stopped accepting connections.  The exchanger
    # goes first so the broker client is the last thing released.
    aclose = getattr(app.state.exchanger, "aclose", None)
    if aclose is not None:
        await aclose()
    await app.state.broker.aclose()
    logger.info("Relying party collaborators released")


def create_app(
    settings: Settings | None = None,
    *,
    broker: BrokerClient | None = None,
    exchanger: CodeExchanger | None = None,
    emitter: EventEmitter | None = None,
) -> FastAPI:
    """Build the relying party's ASGI app.

    Collaborators default to the real ones built from *settings*; tests pass
    fakes.  Whatever is passed in is owned by the app and closed on shutdown.
    """
    settings = settings or SETTINGS
    install_request_context_filter()

    app = FastAPI(
        title="rp-fixture",
        lifespan=lifespan,
        docs_url="/docs" if settings.is_dev else None,
        redoc_url=None,
        openapi_url="/openapi.json" if settings.is_dev else None,
    )

    app.state.settings = settings
    app.state.emitter = emitter if emitter is not None else EventEmitter()
    app.state.broker = broker or PortierClient(
        settings.broker_url,
        settings.redirect_uri,
        timeout=settings.broker_timeout,
    )
    app.state.exchanger = exchanger or TokenExchanger(
        httpx.AsyncClient(timeout=settings.broker_timeout),
        settings.token_endpoint,
    )

    # Last-added runs first: RequestContext → Metrics → route handler.
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestContextMiddleware)

    app.include_router(login_router)
    app.include_router(verify_router)
    app.include_router(health_router)
    app.include_router(metrics_router)

    return app
