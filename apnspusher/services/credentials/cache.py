from __future__ import annotations

import threading
from typing import Callable

from apnspusher.domain.models import SignedBearer
from apnspusher.services.credentials.signer import sign_bearer
from apnspusher.services.credentials.timestamp import TimestampGate


Signer = Callable[[str, str, str, int], str]


class SignatureCache:
    """Most recent provider token for one set of key material."""

    def __init__(self, *, gate: TimestampGate | None = None, signer: Signer | None = None) -> None:
        self._gate = gate or TimestampGate()
        self._signer = signer or sign_bearer
        self._key = ""
        self._key_id = ""
        self._team_id = ""
        self._bearer: SignedBearer | None = None
        self._lock = threading.RLock()

    def update(self, key: str, key_id: str, team_id: str) -> None:
        with self._lock:
            if (key, key_id, team_id) == (self._key, self._key_id, self._team_id):
                return
            self._key = key
            self._key_id = key_id
            self._team_id = team_id
            self._bearer = None

    def get_signature(self) -> str:
        with self._lock:
            if self._bearer is None or not self._bearer.token or self._gate.expired():
                issued_at = self._gate.current()
                token = self._signer(self._key, self._key_id, self._team_id, issued_at)
                self._bearer = SignedBearer(token=token, issued_at=issued_at)
            return self._bearer.token

    @property
    def bearer(self) -> SignedBearer | None:
        with self._lock:
            return self._bearer
