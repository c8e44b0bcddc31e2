from __future__ import annotations

import asyncio
import logging
import ssl
import time
from typing import AsyncIterator, Callable, Iterable

import httpx

from apnspusher.core.config import get_settings
from apnspusher.core.errors import ServerError, TransportError
from apnspusher.domain.models import DeliveryState, DeviceToken, DispatchOutcome, PushRequest
from apnspusher.services.telemetry import increment_counter, record_external_call


logger = logging.getLogger(__name__)

INTEGRATION_NAME = "apns.push"
UNKNOWN_REASON = "Unknown error"

StateCallback = Callable[[DeviceToken], None]


def _short(token: str) -> str:
    return token[:8] + "..." if len(token) > 8 else token


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


def extract_reason(response: httpx.Response) -> str:
    # APNs error bodies look like {"reason": "BadDeviceToken"}.
    try:
        data = response.json()
    except ValueError:
        return UNKNOWN_REASON
    if isinstance(data, dict):
        reason = data.get("reason")
        if isinstance(reason, str) and reason:
            return reason
    return UNKNOWN_REASON


class Dispatcher:
    """Fan one send operation out to every selected device token.

    All requests share one ``httpx.AsyncClient``. Each token is marked
    PENDING before its request is issued and DELIVERED or FAILED when its
    own response arrives; one token's failure never affects the others.
    Requests are attempted once.
    """

    def __init__(
        self,
        *,
        ssl_context: ssl.SSLContext | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        http2: bool | None = None,
        on_state_change: StateCallback | None = None,
    ) -> None:
        self._ssl_context = ssl_context
        self._transport = transport
        self._http2 = get_settings().apns_http2 if http2 is None else http2
        self._on_state_change = on_state_change

    def _client(self) -> httpx.AsyncClient:
        if self._transport is not None:
            return httpx.AsyncClient(transport=self._transport)
        verify: ssl.SSLContext | bool = self._ssl_context if self._ssl_context is not None else True
        return httpx.AsyncClient(http2=self._http2, verify=verify)

    def _set_state(self, token: DeviceToken, state: DeliveryState) -> None:
        token.delivery_state = state
        if self._on_state_change is not None:
            self._on_state_change(token)

    async def send(self, pairs: Iterable[tuple[DeviceToken, PushRequest]]) -> AsyncIterator[DispatchOutcome]:
        selected = [(token, request) for token, request in pairs if token.selected]
        if not selected:
            return
        async with self._client() as client:
            tasks: list[asyncio.Task[DispatchOutcome]] = []
            for token, request in selected:
                self._set_state(token, DeliveryState.PENDING)
                tasks.append(asyncio.create_task(self._deliver(client, token, request)))
            try:
                for next_done in asyncio.as_completed(tasks):
                    yield await next_done
            finally:
                # In-flight requests are never cancelled; wait for their terminal result.
                await asyncio.gather(*tasks, return_exceptions=True)

    async def send_all(self, pairs: Iterable[tuple[DeviceToken, PushRequest]]) -> list[DispatchOutcome]:
        return [outcome async for outcome in self.send(pairs)]

    async def _deliver(
        self,
        client: httpx.AsyncClient,
        token: DeviceToken,
        request: PushRequest,
    ) -> DispatchOutcome:
        start = time.monotonic()
        try:
            response = await self._post(client, request)
        except TransportError as exc:
            outcome = DispatchOutcome(token=request.target_token, success=False, transport_error=str(exc))
            logger.warning("apns_push_transport_failed token=%s error=%s", _short(token.token), exc)
        except ServerError as exc:
            outcome = DispatchOutcome(
                token=request.target_token,
                success=False,
                server_reason=exc.reason,
                status_code=exc.status_code,
                apns_id=exc.apns_id,
            )
            logger.warning(
                "apns_push_rejected token=%s status=%s reason=%s",
                _short(token.token),
                exc.status_code,
                exc.reason,
            )
        else:
            outcome = DispatchOutcome(
                token=request.target_token,
                success=True,
                status_code=response.status_code,
                apns_id=response.headers.get("apns-id"),
            )
            logger.info("apns_push_delivered token=%s apns_id=%s", _short(token.token), outcome.apns_id)

        record_external_call(
            integration=INTEGRATION_NAME,
            latency_ms=(time.monotonic() - start) * 1000.0,
            success=outcome.success,
        )
        increment_counter("apns_push_delivered_total" if outcome.success else "apns_push_failed_total")
        self._set_state(token, DeliveryState.DELIVERED if outcome.success else DeliveryState.FAILED)
        return outcome

    async def _post(self, client: httpx.AsyncClient, request: PushRequest) -> httpx.Response:
        try:
            response = await client.post(request.url, content=request.body, headers=request.headers())
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # InvalidURL does not derive from HTTPError.
            raise TransportError(_describe(exc)) from exc
        if response.status_code != 200:
            raise ServerError(response.status_code, extract_reason(response), response.headers.get("apns-id"))
        return response
