"""Broker callback: GET /verify (query string) and POST /verify (form_post).

Parameter extraction and response rendering live here; the decision logic
is services.verification.handle_verify.
"""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import HTMLResponse

from relying_party.api import pages
from relying_party.api.dependencies import get_broker, get_emitter, get_exchanger
from relying_party.core.events import EventEmitter, RPEvent
from relying_party.models.callback import merge_callback_params
from relying_party.services.broker_client import BrokerClient
from relying_party.services.token_exchange import CodeExchanger
from relying_party.services.verification import handle_verify

router = APIRouter(tags=["verify"])

_FAILURE_PAGES = {
    RPEvent.GOT_ERROR: pages.got_error_page,
    RPEvent.INVALID_TOKEN: pages.invalid_token_page,
}


async def _form_fields(request: Request) -> dict[str, str]:
    if request.method != "POST":
        return {}
    form = await request.form()
    # File parts have no meaning in a callback.
    return {k: v for k, v in form.items() if isinstance(v, str)}


@router.api_route("/verify", methods=["GET", "POST"], response_class=HTMLResponse)
async def verify(
    request: Request,
    broker: Annotated[BrokerClient, Depends(get_broker)],
    exchanger: Annotated[CodeExchanger, Depends(get_exchanger)],
    emitter: Annotated[EventEmitter, Depends(get_emitter)],
) -> HTMLResponse:
    params = merge_callback_params(
        await _form_fields(request), dict(request.query_params)
    )
    result = await handle_verify(
        params, broker=broker, exchanger=exchanger, emitter=emitter
    )

    if result.ok:
        return HTMLResponse(pages.confirmed_page(result.identity))
    return HTMLResponse(
        _FAILURE_PAGES[result.outcome](),
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
