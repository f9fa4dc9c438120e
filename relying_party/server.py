"""RelyingParty: the fixture object a test suite holds on to.

    rp = start_relying_party()
    rp.on("verified", seen.append)
    ...                      # drive a browser through the broker
    rp.destroy()

The instance *is* the event emitter, so test code subscribes on it
directly.  start() runs uvicorn on a daemon thread and returns once the
socket is bound.  destroy() asks uvicorn to exit and waits for the thread.
Uvicorn stops listening first and then runs the app's lifespan shutdown,
which releases the code exchanger and the broker client.  Requests still
in flight when destroy() is called are not guaranteed to finish.
"""

from __future__ import annotations

import asyncio
import logging
import threading
import time

import uvicorn
from fastapi import FastAPI

from relying_party.core.config import SETTINGS, Settings
from relying_party.core.events import EventEmitter
from relying_party.main import create_app
from relying_party.services.broker_client import BrokerClient
from relying_party.services.token_exchange import CodeExchanger

logger = logging.getLogger(__name__)

STARTUP_TIMEOUT_SEC = 10.0
SHUTDOWN_TIMEOUT_SEC = 10.0


class RelyingParty(EventEmitter):
    def __init__(
        self,
        settings: Settings | None = None,
        *,
        broker: BrokerClient | None = None,
        exchanger: CodeExchanger | None = None,
    ) -> None:
        super().__init__()
        self.settings = settings or SETTINGS
        self.app: FastAPI = create_app(
            self.settings, broker=broker, exchanger=exchanger, emitter=self
        )
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._state_lock = threading.Lock()
        self._destroyed = False

    @property
    def broker(self) -> BrokerClient:
        return self.app.state.broker

    @property
    def port(self) -> int:
        """The bound port; differs from settings.port when that is 0."""
        if self._server is None or not self._server.servers:
            raise RuntimeError("relying party is not running")
        return self._server.servers[0].sockets[0].getsockname()[1]

    @property
    def base_url(self) -> str:
        return f"http://{self.settings.host}:{self.port}"

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> RelyingParty:
        with self._state_lock:
            if self._destroyed:
                raise RuntimeError("relying party has been destroyed")
            if self._thread is not None:
                raise RuntimeError("relying party already started")

            config = uvicorn.Config(
                self.app,
                host=self.settings.host,
                port=self.settings.port,
                lifespan="on",
                log_config=None,
                access_log=False,
            )
            self._server = uvicorn.Server(config)
            self._thread = threading.Thread(
                target=self._server.run, name="relying-party", daemon=True
            )
            self._thread.start()

        deadline = time.monotonic() + STARTUP_TIMEOUT_SEC
        while not self._server.started:
            if not self._thread.is_alive():
                raise RuntimeError(
                    f"relying party failed to start on "
                    f"{self.settings.host}:{self.settings.port}"
                )
            if time.monotonic() > deadline:
                self._server.should_exit = True
                raise RuntimeError("relying party did not start in time")
            time.sleep(0.01)

        logger.info("Relying party listening  url=%s", self.base_url)
        return self

    def destroy(self) -> None:
        """Stop accepting connections, then release the broker client.

        Only the first successful call does anything.  If a never-started
        instance fails to release its collaborators, destroy() may be retried.
        """
        with self._state_lock:
            if self._destroyed:
                return
            self._destroyed = True
            server, thread = self._server, self._thread

        if server is None or thread is None:
            # Never started, so the lifespan never ran: close directly.
            try:
                self._close_without_server()
            except Exception:
                with self._state_lock:
                    self._destroyed = False
                raise
            return

        server.should_exit = True
        thread.join(timeout=SHUTDOWN_TIMEOUT_SEC)
        if thread.is_alive():
            logger.warning("Relying party thread still alive after shutdown timeout")
        logger.info("Relying party stopped")

    def _close_without_server(self) -> None:
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            asyncio.run(self._close_collaborators())
            return

        # Called from async code: asyncio.run() cannot nest, so the close
        # runs on its own loop in a helper thread.
        errors: list[BaseException] = []

        def _run() -> None:
            try:
                asyncio.run(self._close_collaborators())
            except BaseException as exc:
                errors.append(exc)

        closer = threading.Thread(target=_run, name="relying-party-close")
        closer.start()
        closer.join()
        if errors:
            raise errors[0]

    async def _close_collaborators(self) -> None:
        aclose = getattr(self.app.state.exchanger, "aclose", None)
        if aclose is not None:
            await aclose()
        await self.app.state.broker.aclose()


def start_relying_party(
    settings: Settings | None = None,
    *,
    broker: BrokerClient | None = None,
    exchanger: CodeExchanger | None = None,
) -> RelyingParty:
    return RelyingParty(settings, broker=broker, exchanger=exchanger).start()
