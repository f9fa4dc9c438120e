"""Authorization code exchange against the broker's token endpoint.

One POST per code, form-encoded:

    grant_type=authorization_code&code=<code>&redirect_uri=<redirect_uri>

200 → the `id_token` field ("" when the broker left it out; verify() will
reject that later, which is not this layer's call).  Anything else →
ExchangeError carrying the endpoint's `error` / `error_description`.

Transport failures and timeouts also become ExchangeError, so the verify
handler has a single exception to catch for "the exchange itself failed".
"""

from __future__ import annotations

import logging
from typing import Protocol

import httpx

from relying_party.core.metrics import TOKEN_EXCHANGES
from relying_party.models.token_response import (
    MalformedTokenResponse,
    TokenEndpointError,
    parse_token_response,
)

logger = logging.getLogger(__name__)


class ExchangeError(Exception):
    def __init__(self, error: str, description: str = "") -> None:
        super().__init__(f"{error}: {description}" if description else error)
        self.error = error
        self.description = description


class CodeExchanger(Protocol):
    async def exchange_code(self, code: str, redirect_uri: str) -> str: ...


class TokenExchanger:
    def __init__(self, http_client: httpx.AsyncClient, token_endpoint: str) -> None:
        self._http = http_client
        self._token_endpoint = token_endpoint

    @property
    def token_endpoint(self) -> str:
        return self._token_endpoint

    async def exchange_code(self, code: str, redirect_uri: str) -> str:
        # NOTE: never log the code itself; it is a bearer credential until used.
        logger.info("Exchanging authorization code  endpoint=%s", self._token_endpoint)

        try:
            resp = await self._http.post(
                self._token_endpoint,
                data={
                    "grant_type": "authorization_code",
                    "code": code,
                    "redirect_uri": redirect_uri,
                },
            )
        except httpx.HTTPError as exc:
            TOKEN_EXCHANGES.labels(result="network_error").inc()
            raise ExchangeError(
                "network_error", f"{type(exc).__name__}: {exc}"
            ) from exc

        try:
            parsed = parse_token_response(resp.status_code, resp.content)
        except MalformedTokenResponse as exc:
            TOKEN_EXCHANGES.labels(result="invalid_response").inc()
            raise ExchangeError("invalid_response", str(exc)) from exc

        if isinstance(parsed, TokenEndpointError):
            TOKEN_EXCHANGES.labels(result="error").inc()
            raise ExchangeError(
                parsed.error or f"http_{resp.status_code}", parsed.error_description
            )

        TOKEN_EXCHANGES.labels(result="ok").inc()
        return parsed.id_token

    async def aclose(self) -> None:
        await self._http.aclose()
