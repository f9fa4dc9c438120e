"""Synchronous event emitter used to surface verify outcomes to test code.

The relying party reports what happened on each callback by emitting one of
the events below.  Test code subscribes with ``on()``; the return value of
``emit()`` tells the emitter's owner whether anybody was listening, which is
how the verify handler decides to fall back to a log diagnostic.

Listeners are registered from the test thread while events fire on the
uvicorn server thread, so the listener table is guarded by a lock.  The lock
is never held while a listener runs.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from enum import StrEnum
from typing import Any

logger = logging.getLogger(__name__)

Listener = Callable[..., Any]


class RPEvent(StrEnum):
    GOT_ERROR = "gotError"
    INVALID_TOKEN = "invalidToken"
    VERIFIED = "verified"


class EventEmitter:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, listener: Listener) -> Listener:
        """Register *listener* for *event*.  Returns the listener, which is
        what off() needs when it was a lambda."""
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)
        return listener

    def once(self, event: str, listener: Listener) -> Listener:
        """Register a listener that removes itself after the first call."""

        def _wrapper(*args: Any) -> Any:
            self.off(event, _wrapper)
            return listener(*args)

        self.on(event, _wrapper)
        return _wrapper

    def off(self, event: str, listener: Listener) -> None:
        with self._lock:
            listeners = self._listeners.get(event)
            if not listeners or listener not in listeners:
                return
            listeners.remove(listener)
            if not listeners:
                del self._listeners[event]

    def remove_all_listeners(self, event: str | None = None) -> None:
        with self._lock:
            if event is None:
                self._listeners.clear()
            else:
                self._listeners.pop(event, None)

    def listener_count(self, event: str) -> int:
        with self._lock:
            return len(self._listeners.get(event, ()))

    def emit(self, event: str, *args: Any) -> bool:
        """Call every listener for *event* in registration order.

        Returns True if at least one listener was registered.  A listener
        that raises is logged and does not stop the remaining listeners;
        the event still counts as handled.
        """
        with self._lock:
            listeners = list(self._listeners.get(event, ()))
        for listener in listeners:
            try:
                listener(*args)
            except Exception:
                logger.exception("Listener for %r raised", event)
        return bool(listeners)
