from __future__ import annotations

import datetime
from dataclasses import dataclass
from typing import Protocol


@dataclass(frozen=True, slots=True)
class PendingNonce:
    nonce: str
    email: str
    expires_at: int


def _now_ts() -> int:
    return int(datetime.datetime.now(datetime.UTC).timestamp())


class NonceRepo(Protocol):
    def add(self, record: PendingNonce) -> None: ...
    def consume(self, nonce: str) -> PendingNonce | None: ...
    def clear(self) -> None: ...


class InMemoryNonceRepo:
    """Nonces issued by authenticate(), waiting for their id_token.

    Nothing is persisted; a restarted fixture forgets every pending login.
    """

    def __init__(self) -> None:
        self._by_nonce: dict[str, PendingNonce] = {}

    def add(self, record: PendingNonce) -> None:
        self._purge_expired()
        self._by_nonce[record.nonce] = record

    def consume(self, nonce: str) -> PendingNonce | None:
        """Remove and return the record. Returns None if the nonce is unknown,
        already consumed, or expired."""
        record = self._by_nonce.pop(nonce, None)
        if record is None or record.expires_at < _now_ts():
            return None
        return record

    def clear(self) -> None:
        self._by_nonce.clear()

    def _purge_expired(self) -> None:
        now = _now_ts()
        expired = [n for n, r in self._by_nonce.items() if r.expires_at < now]
        for nonce in expired:
            del self._by_nonce[nonce]
