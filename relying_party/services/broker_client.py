"""Interface the relying party needs from an identity broker client.

The verify handler and the /auth route only ever talk to this Protocol.
PortierClient (services/portier_client.py) is the real implementation;
tests substitute small recording fakes.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable


class BrokerError(Exception):
    """Base class for failures talking to the broker."""


class DiscoveryError(BrokerError):
    """The broker's OpenID configuration could not be fetched or is incomplete."""


class AuthStartError(BrokerError):
    """authenticate() could not produce a redirect URL."""


class TokenVerifyError(BrokerError):
    """verify() rejected the token (empty, malformed, expired, bad signature,
    unknown nonce ...)."""


@runtime_checkable
class BrokerClient(Protocol):
    @property
    def redirect_uri(self) -> str:
        """Callback URL registered with the broker; fixed for the client's life."""
        ...

    async def authenticate(self, email: str) -> str:
        """Start a login for *email*. Returns the URL to send the browser to.

        Raises AuthStartError.
        """
        ...

    async def verify(self, token: str) -> str:
        """Validate an id_token and return the verified identity (an email).

        Raises TokenVerifyError, including for the empty string.
        """
        ...

    async def aclose(self) -> None:
        """Release network resources. Safe to call more than once."""
        ...
