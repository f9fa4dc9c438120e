"""The relying party's decision logic for /auth and /verify.

handle_verify() walks a callback through these steps, first match wins:

  1. `error` set         → gotError, stop (no token resolution)
  2. `id_token` set      → that is the token
  3. `code` set          → exchange it; a failed exchange → gotError, stop
  4. none of the above   → token is ""
  5. broker.verify(token) → verified(identity) or invalidToken(params)

An empty token is still handed to verify().  "No token" and "broker
rejected the token" must land in the same category (invalidToken), while
"broker reported an error" and "code exchange failed" land in gotError.
Test code relies on telling those two categories apart.

When nobody listens for gotError / invalidToken the failure is logged at
ERROR instead, so a manual run never fails silently.
"""

from __future__ import annotations

import logging

from relying_party.core.events import EventEmitter, RPEvent
from relying_party.core.metrics import VERIFY_OUTCOMES
from relying_party.models.callback import CallbackParams, VerifyResult
from relying_party.services.broker_client import AuthStartError, BrokerClient
from relying_party.services.token_exchange import CodeExchanger, ExchangeError

logger = logging.getLogger(__name__)


async def start_auth(broker: BrokerClient, email: str) -> str:
    """Ask the broker where to send the browser for *email*.

    Raises AuthStartError for an empty email or any broker failure.
    """
    if not email:
        raise AuthStartError("email must not be empty")
    try:
        return await broker.authenticate(email)
    except AuthStartError:
        raise
    except Exception as exc:
        raise AuthStartError(f"{type(exc).__name__}: {exc}") from exc


def _finish(result: VerifyResult) -> VerifyResult:
    VERIFY_OUTCOMES.labels(outcome=result.outcome.value).inc()
    return result


def _report_error(
    emitter: EventEmitter, params: CallbackParams, error: str, description: str
) -> VerifyResult:
    if not emitter.emit(RPEvent.GOT_ERROR, dict(params)):
        logger.error(
            "RP got an error from the broker: %s  description=%s",
            error,
            description,
            extra={"outcome": RPEvent.GOT_ERROR.value},
        )
    return _finish(VerifyResult(RPEvent.GOT_ERROR, params=params))


async def handle_verify(
    params: CallbackParams,
    *,
    broker: BrokerClient,
    exchanger: CodeExchanger,
    emitter: EventEmitter,
) -> VerifyResult:
    # --- 1. Broker-reported error ---------------------------------------------
    error = params.get("error", "")
    if error:
        logger.info("VERIFY [error] broker reported error=%s", error)
        return _report_error(
            emitter, params, error, params.get("error_description", "")
        )

    # --- 2. Implicit flow -----------------------------------------------------
    token = params.get("id_token", "")
    if token:
        logger.info("VERIFY [implicit] id_token received in callback")

    # --- 3. Authorization code flow ---------------------------------------------
    elif code := params.get("code", ""):
        logger.info("VERIFY [code] authorization code received, exchanging")
        try:
            token = await exchanger.exchange_code(code, broker.redirect_uri)
        except ExchangeError as exc:
            logger.info("VERIFY [code] exchange failed  error=%s", exc.error)
            return _report_error(emitter, params, exc.error, exc.description)

    # --- 4. No token signal at all ----------------------------------------------
    else:
        logger.info("VERIFY [empty] callback carried no token signal")

    # --- 5. Verification ------------------------------------------------------
    try:
        identity = await broker.verify(token)
    except Exception:
        if not emitter.emit(RPEvent.INVALID_TOKEN, dict(params)):
            logger.exception(
                "RP failed to verify token",
                extra={"outcome": RPEvent.INVALID_TOKEN.value},
            )
        return _finish(VerifyResult(RPEvent.INVALID_TOKEN, params=params))

    logger.info(
        "VERIFY [ok] identity verified", extra={"outcome": RPEvent.VERIFIED.value}
    )
    emitter.emit(RPEvent.VERIFIED, identity)
    return _finish(VerifyResult(RPEvent.VERIFIED, params=params, identity=identity))
