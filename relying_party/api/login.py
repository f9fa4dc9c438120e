"""Login entry points: the email form and the hand-off to the broker.

GET  /: form with a single `email` field posting to /auth
POST /auth: ask the broker client for a redirect URL, answer 303 to it

A failure to start authentication renders a generic error page.  The email
and the error never reach the response; the full error goes to the log.
There is no callback context yet, so no event is emitted.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Form, status
from fastapi.responses import HTMLResponse, RedirectResponse

from relying_party.api import pages
from relying_party.api.dependencies import get_broker
from relying_party.services.broker_client import AuthStartError, BrokerClient
from relying_party.services.verification import start_auth

logger = logging.getLogger(__name__)

router = APIRouter(tags=["login"])


@router.get("/", response_class=HTMLResponse)
def login_form() -> HTMLResponse:
    return HTMLResponse(pages.login_page())


@router.post("/auth", response_model=None)
async def auth(
    broker: Annotated[BrokerClient, Depends(get_broker)],
    email: Annotated[str, Form()] = "",
) -> RedirectResponse | HTMLResponse:
    try:
        auth_url = await start_auth(broker, email.strip())
    except AuthStartError:
        logger.exception("RP failed to start authentication")
        return HTMLResponse(
            pages.auth_error_page(),
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )

    logger.info("Redirecting browser to broker")
    return RedirectResponse(url=auth_url, status_code=status.HTTP_303_SEE_OTHER)
