from __future__ import annotations

from dataclasses import dataclass
import logging
import ssl
from typing import Any, Callable

import httpx

from apnspusher.core.config import Settings, get_settings
from apnspusher.core.errors import ApnsPusherError, MissingDeviceTokens, MissingTopic
from apnspusher.domain.models import (
    CertificateCredential,
    ConnectionMode,
    Credential,
    DeviceToken,
    DispatchOutcome,
    PushRequest,
    StatusMessage,
)
from apnspusher.persistence.settings_store import SettingsStore
from apnspusher.services.credentials.cache import SignatureCache
from apnspusher.services.credentials.identity_store import (
    DirectoryIdentityStore,
    IdentityStore,
    InMemoryIdentityStore,
)
from apnspusher.services.credentials.resolver import CredentialResolver
from apnspusher.services.credentials.timestamp import TimestampGate
from apnspusher.services.push.dispatcher import Dispatcher
from apnspusher.services.push.request_builder import RequestBuilder
from apnspusher.services.push.transport import TransportAuthenticator


logger = logging.getLogger(__name__)

DEFAULT_PAYLOAD = """{
    "aps": {
        "alert" : {
            "title" : "Push message",
            "subtitle" : "Test push notification",
            "body" : "You can handle it or dismiss"
        },
        "badge": 6,
        "sound": "default"
    }
}"""

StatusCallback = Callable[[StatusMessage], None]
TokenCallback = Callable[[DeviceToken], None]


@dataclass(frozen=True)
class PreparedSend:
    credential: Credential
    ssl_context: ssl.SSLContext
    requests: list[tuple[DeviceToken, PushRequest]]


def build_identity_store(settings: Settings) -> IdentityStore:
    if settings.identity_key_dir:
        return DirectoryIdentityStore(settings.identity_key_dir, password=settings.identity_key_password)
    return InMemoryIdentityStore()


class PushSession:
    """Input fields, device tokens and status line for repeated sends.

    ``send`` validates the inputs, resolves credentials once, builds one
    request per selected token and dispatches them concurrently. Any
    validation, credential or payload failure aborts before the network is
    touched and is reported through the status line.
    """

    def __init__(
        self,
        *,
        store: SettingsStore | None = None,
        identity_store: IdentityStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        signature_cache: SignatureCache | None = None,
        on_status: StatusCallback | None = None,
        on_token_update: TokenCallback | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self.connection_mode = ConnectionMode.TOKEN
        self.key_file = ""
        self.key_id = ""
        self.team_id = ""
        self.certificate_file = ""
        self.device_tokens: list[DeviceToken] = []
        self.priority = self._settings.apns_default_priority
        self.collapse_id = ""
        self.topic = ""
        self.push_type = self._settings.apns_default_push_type
        self.environment_url = self._settings.apns_sandbox_url
        self.payload = DEFAULT_PAYLOAD
        self.status = StatusMessage()
        self.last_error: ApnsPusherError | None = None

        self._store = store
        self._transport = transport
        self._on_status = on_status
        self._on_token_update = on_token_update
        self._resolver = CredentialResolver(identity_store or build_identity_store(self._settings))
        self._signature_cache = signature_cache or SignatureCache(
            gate=TimestampGate(ttl_seconds=self._settings.apns_token_ttl_seconds)
        )

    @property
    def is_token_based(self) -> bool:
        return self.connection_mode is ConnectionMode.TOKEN

    def use_production(self, production: bool) -> None:
        self.environment_url = (
            self._settings.apns_production_url if production else self._settings.apns_sandbox_url
        )

    def add_device_token(self, token: str, *, selected: bool = True) -> DeviceToken:
        token = token.strip()
        for existing in self.device_tokens:
            if existing.token == token:
                existing.selected = selected
                return existing
        device_token = DeviceToken(token=token, selected=selected)
        self.device_tokens.append(device_token)
        return device_token

    def remove_device_token(self, token: str) -> bool:
        before = len(self.device_tokens)
        self.device_tokens = [item for item in self.device_tokens if item.token != token]
        return len(self.device_tokens) != before

    def load_certificate(self) -> CertificateCredential | None:
        # Eager load so the derived topic can be shown before the first send.
        try:
            credential = self._resolver.resolve_certificate(self.certificate_file)
        except ApnsPusherError as exc:
            self._set_status(str(exc), is_error=True)
            return None
        self._apply_derived_topic(credential)
        self._set_status("Certificate loaded", is_error=False)
        return credential

    def prepare(self) -> PreparedSend:
        if not self.topic and self.is_token_based:
            raise MissingTopic("topic required")
        if not self.device_tokens:
            raise MissingDeviceTokens("device token required")
        selected = [token for token in self.device_tokens if token.selected]
        if not selected:
            raise MissingDeviceTokens("no device token selected")

        credential = self._resolve_credential()
        if isinstance(credential, CertificateCredential):
            self._apply_derived_topic(credential)
        if not self.topic:
            raise MissingTopic("topic required")

        identity = credential.identity if isinstance(credential, CertificateCredential) else None
        ssl_context = TransportAuthenticator(self.connection_mode, identity).ssl_context()
        builder = RequestBuilder(self.environment_url, self._signature_cache)
        requests = [
            (
                token,
                builder.build(
                    token.token,
                    credential,
                    self.topic,
                    self.priority,
                    self.push_type,
                    self.collapse_id,
                    self.payload,
                ),
            )
            for token in selected
        ]
        return PreparedSend(credential=credential, ssl_context=ssl_context, requests=requests)

    async def send(self) -> list[DispatchOutcome]:
        self.last_error = None
        try:
            prepared = self.prepare()
        except ApnsPusherError as exc:
            self.last_error = exc
            logger.warning("push_send_aborted error=%s message=%s", type(exc).__name__, exc)
            self._set_status(str(exc), is_error=True)
            return []
        self.save()

        dispatcher = Dispatcher(
            ssl_context=prepared.ssl_context,
            transport=self._transport,
            http2=self._settings.apns_http2,
            on_state_change=self._token_updated,
        )
        outcomes: list[DispatchOutcome] = []
        async for outcome in dispatcher.send(prepared.requests):
            outcomes.append(outcome)
            self._set_status(outcome.message, is_error=not outcome.success)
        return outcomes

    def _resolve_credential(self) -> Credential:
        if self.is_token_based:
            credential = self._resolver.resolve_token(self.key_file, self.key_id, self.team_id)
            self._signature_cache.update(credential.private_key_pem, credential.key_id, credential.team_id)
            return credential
        return self._resolver.resolve_certificate(self.certificate_file)

    def _apply_derived_topic(self, credential: CertificateCredential) -> None:
        if not self.topic and credential.derived_topic:
            self.topic = credential.derived_topic

    def _token_updated(self, token: DeviceToken) -> None:
        if self._on_token_update is not None:
            self._on_token_update(token)

    def _set_status(self, text: str, *, is_error: bool) -> None:
        self.status = StatusMessage(text=text, is_error=is_error)
        if self._on_status is not None:
            self._on_status(self.status)

    def save(self) -> None:
        if self._store is None:
            return
        values: dict[str, Any] = {
            "p8_file": self.key_file,
            "key_id": self.key_id,
            "team_id": self.team_id,
            "certificate_file": self.certificate_file,
            "connection_mode": self.connection_mode.value,
            "device_tokens": [token.to_json() for token in self.device_tokens],
            "priority": self.priority,
            "collapse_id": self.collapse_id,
            "topic": self.topic,
            "push_type": self.push_type,
            "api_path": self.environment_url,
            "payload": self.payload,
        }
        for key, value in values.items():
            self._store.set(key, value)

    def load(self) -> None:
        if self._store is None:
            return
        self.key_file = self._get_str("p8_file", "")
        self.key_id = self._get_str("key_id", "")
        self.team_id = self._get_str("team_id", "")
        self.certificate_file = self._get_str("certificate_file", "")
        try:
            self.connection_mode = ConnectionMode(self._get_str("connection_mode", ConnectionMode.TOKEN.value))
        except ValueError:
            self.connection_mode = ConnectionMode.TOKEN
        raw_tokens = self._store.get("device_tokens", [])
        if isinstance(raw_tokens, list):
            self.device_tokens = [DeviceToken.from_json(raw) for raw in raw_tokens if isinstance(raw, str)]
        priority = self._store.get("priority", 0)
        self.priority = priority if isinstance(priority, int) and priority else self._settings.apns_default_priority
        self.collapse_id = self._get_str("collapse_id", "")
        topic = self._get_str("topic", "")
        if topic:
            self.topic = topic
        self.push_type = self._get_str("push_type", self._settings.apns_default_push_type)
        self.environment_url = self._get_str("api_path", self._settings.apns_sandbox_url)
        self.payload = self._get_str("payload", DEFAULT_PAYLOAD)

    def _get_str(self, key: str, default: str) -> str:
        value = self._store.get(key, default) if self._store is not None else default
        return value if isinstance(value, str) else default
