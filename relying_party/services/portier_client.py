"""Portier broker client: OpenID Connect implicit flow with form_post.

authenticate(email)
  1. Fetch the broker's discovery document (cached for the client's life).
  2. Mint a nonce and remember it together with the email.
  3. Build the authorization URL:
       login_hint=<email>  scope="openid email"  nonce=<nonce>
       response_type=id_token  response_mode=form_post
       client_id=<origin of redirect_uri>  redirect_uri=<redirect_uri>

verify(token)
  1. Reject the empty string outright.
  2. Fetch the broker's JWKS and pick the key named by the token's `kid`.
  3. Check the RS256 signature, `iss` (the broker), `aud` (our origin),
     `exp`/`iat`, and that `nonce` and `email` are present.
  4. Consume the nonce. An unknown, replayed or expired nonce is rejected,
     as is a token whose email does not belong to that nonce.
  5. Return the `email` claim.

The JWKS is fetched on every verify.  Brokers under test rotate keys
between runs and the fixture never sees enough traffic for it to matter.
"""

from __future__ import annotations

import logging
import secrets
from datetime import UTC, datetime, timedelta
from typing import Any
from urllib.parse import urlencode, urlsplit

import httpx
import jwt

from relying_party.repos.nonce_repo import InMemoryNonceRepo, NonceRepo, PendingNonce
from relying_party.services.broker_client import (
    AuthStartError,
    DiscoveryError,
    TokenVerifyError,
)

logger = logging.getLogger(__name__)

ALGORITHM = "RS256"
NONCE_TTL_SEC = 600
LEEWAY_SEC = 5


def origin_of(url: str) -> str:
    parts = urlsplit(url)
    if not parts.scheme or not parts.netloc:
        raise ValueError(f"not an absolute URL: {url!r}")
    return f"{parts.scheme}://{parts.netloc}"


class PortierClient:
    def __init__(
        self,
        broker_url: str,
        redirect_uri: str,
        *,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = 10.0,
        nonce_repo: NonceRepo | None = None,
        nonce_ttl: int = NONCE_TTL_SEC,
    ) -> None:
        self._broker_url = broker_url.rstrip("/")
        self._redirect_uri = redirect_uri
        self._client_id = origin_of(redirect_uri)
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._nonces: NonceRepo = nonce_repo or InMemoryNonceRepo()
        self._nonce_ttl = nonce_ttl
        self._config: dict[str, Any] | None = None
        self._closed = False

    @property
    def redirect_uri(self) -> str:
        return self._redirect_uri

    @property
    def client_id(self) -> str:
        return self._client_id

    @property
    def broker_url(self) -> str:
        return self._broker_url

    # ------------------------------------------------------------------
    # Discovery
    # ------------------------------------------------------------------

    async def _discover(self) -> dict[str, Any]:
        if self._config is not None:
            return self._config

        url = f"{self._broker_url}/.well-known/openid-configuration"
        try:
            resp = await self._http.get(url)
            resp.raise_for_status()
            config = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            raise DiscoveryError(f"could not fetch {url}: {exc}") from exc

        if not isinstance(config, dict):
            raise DiscoveryError(f"discovery document at {url} is not an object")
        for key in ("authorization_endpoint", "jwks_uri"):
            if not isinstance(config.get(key), str) or not config[key]:
                raise DiscoveryError(f"discovery document is missing {key!r}")

        self._config = config
        return config

    async def _fetch_jwks(self) -> jwt.PyJWKSet:
        config = await self._discover()
        resp = await self._http.get(config["jwks_uri"])
        resp.raise_for_status()
        payload = resp.json()
        if not isinstance(payload, dict):
            raise ValueError("JWKS document is not an object")
        return jwt.PyJWKSet.from_dict(payload)

    # ------------------------------------------------------------------
    # authenticate
    # ------------------------------------------------------------------

    async def authenticate(self, email: str) -> str:
        if self._closed:
            raise AuthStartError("client has been closed")
        if not email:
            raise AuthStartError("email must not be empty")

        try:
            config = await self._discover()
        except DiscoveryError as exc:
            raise AuthStartError(str(exc)) from exc

        nonce = secrets.token_urlsafe(16)
        expires = datetime.now(UTC) + timedelta(seconds=self._nonce_ttl)
        expires_at = int(expires.timestamp())
        self._nonces.add(PendingNonce(nonce=nonce, email=email, expires_at=expires_at))

        params = {
            "login_hint": email,
            "scope": "openid email",
            "nonce": nonce,
            "response_type": "id_token",
            "response_mode": "form_post",
            "client_id": self._client_id,
            "redirect_uri": self._redirect_uri,
        }
        endpoint = config["authorization_endpoint"]
        separator = "&" if "?" in endpoint else "?"
        return f"{endpoint}{separator}{urlencode(params)}"

    # ------------------------------------------------------------------
    # verify
    # ------------------------------------------------------------------

    async def verify(self, token: str) -> str:
        if not token:
            raise TokenVerifyError("no token provided")

        try:
            header = jwt.get_unverified_header(token)
        except jwt.InvalidTokenError as exc:
            raise TokenVerifyError(f"malformed token: {exc}") from exc

        kid = header.get("kid")
        if not kid:
            raise TokenVerifyError("token header has no 'kid'")

        try:
            jwks = await self._fetch_jwks()
        except (DiscoveryError, httpx.HTTPError, ValueError, jwt.PyJWKSetError) as exc:
            raise TokenVerifyError(f"could not load broker keys: {exc}") from exc

        try:
            signing_key = jwks[kid]
        except KeyError:
            raise TokenVerifyError(f"no broker key with kid {kid!r}") from None

        try:
            claims = jwt.decode(
                token,
                signing_key.key,
                algorithms=[ALGORITHM],
                audience=self._client_id,
                issuer=self._broker_url,
                leeway=LEEWAY_SEC,
                options={"require": ["exp", "iat", "nonce", "email"]},
            )
        except jwt.InvalidTokenError as exc:
            raise TokenVerifyError(f"token rejected: {exc}") from exc

        pending = self._nonces.consume(str(claims["nonce"]))
        if pending is None:
            raise TokenVerifyError("unknown, replayed or expired nonce")

        # The broker normalizes the address; email_original is what the
        # user typed into authenticate().
        claimed = str(claims.get("email_original") or claims["email"])
        if claimed.casefold() != pending.email.casefold():
            raise TokenVerifyError("token email does not match the login request")

        return str(claims["email"])

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._nonces.clear()
        if self._owns_http:
            await self._http.aclose()
        logger.debug("Portier client closed  broker=%s", self._broker_url)
