from __future__ import annotations

import time
from typing import Callable

from apnspusher.core.config import get_settings


class TimestampGate:
    """Rolling issuance timestamp for provider tokens.

    APNs answers ``TooManyProviderTokenUpdates`` when the token changes too
    often, so the same ``iat`` is reused until the window has elapsed.
    """

    def __init__(
        self,
        *,
        ttl_seconds: int | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        self._ttl = ttl_seconds if ttl_seconds is not None else get_settings().apns_token_ttl_seconds
        self._clock = clock or time.time
        self._baseline = self._clock()

    @property
    def ttl_seconds(self) -> int:
        return self._ttl

    def expired(self) -> bool:
        return self._clock() - self._baseline > self._ttl

    def current(self) -> int:
        if self.expired():
            self._baseline = self._clock()
        return int(self._baseline)
