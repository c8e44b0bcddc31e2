from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import json
import logging
from typing import Union

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes


logger = logging.getLogger(__name__)

PUSH_TYPES = ("alert", "background", "voip", "complication", "fileprovider", "mdm")
PRIORITIES = (3, 5, 10)


class ConnectionMode(str, Enum):
    TOKEN = "token"
    CERTIFICATE = "certificate"


class DeliveryState(str, Enum):
    UNSENT = "unsent"
    PENDING = "pending"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class DeviceToken:
    # Only the dispatcher mutates delivery_state; token/selected belong to the caller.
    token: str
    selected: bool = True
    delivery_state: DeliveryState = DeliveryState.UNSENT

    def to_json(self) -> str:
        return json.dumps({"token": self.token, "selected": self.selected}, separators=(",", ":"))

    @classmethod
    def from_json(cls, raw: str) -> DeviceToken:
        # Malformed entries decode to an empty, unselected token instead of failing the whole list.
        try:
            data = json.loads(raw)
        except (TypeError, ValueError):
            logger.warning("device_token_decode_failed")
            return cls(token="", selected=False)
        if not isinstance(data, dict):
            return cls(token="", selected=False)
        token = data.get("token")
        selected = data.get("selected")
        return cls(
            token=token if isinstance(token, str) else "",
            selected=selected if isinstance(selected, bool) else False,
        )


@dataclass(frozen=True)
class TokenCredential:
    private_key_pem: str
    key_id: str
    team_id: str


@dataclass(frozen=True)
class ClientIdentity:
    """Client certificate paired with its private key for mutual TLS."""

    certificate: x509.Certificate
    private_key: CertificateIssuerPrivateKeyTypes
    chain: tuple[x509.Certificate, ...] = ()

    def certificate_chain_pem(self) -> bytes:
        certs = (self.certificate, *self.chain)
        return b"".join(cert.public_bytes(serialization.Encoding.PEM) for cert in certs)

    def private_key_pem(self) -> bytes:
        return self.private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption(),
        )


@dataclass(frozen=True)
class CertificateCredential:
    identity: ClientIdentity
    derived_topic: str | None = None


Credential = Union[TokenCredential, CertificateCredential]


@dataclass(frozen=True)
class SignedBearer:
    token: str
    issued_at: int


@dataclass(frozen=True)
class PushRequest:
    target_token: str
    url: str
    topic: str
    priority: int
    push_type: str
    body: bytes
    collapse_id: str | None = None
    authorization: str | None = None

    def headers(self) -> dict[str, str]:
        headers = {
            "apns-topic": self.topic,
            "apns-priority": str(self.priority),
            "apns-push-type": self.push_type,
        }
        if self.collapse_id:
            headers["apns-collapse-id"] = self.collapse_id
        if self.authorization:
            headers["authorization"] = self.authorization
        return headers


@dataclass(frozen=True)
class DispatchOutcome:
    token: str
    success: bool
    server_reason: str | None = None
    transport_error: str | None = None
    status_code: int | None = None
    apns_id: str | None = None

    @property
    def message(self) -> str:
        if self.success:
            return "Success"
        return self.server_reason or self.transport_error or "Unknown error"


@dataclass(frozen=True)
class StatusMessage:
    text: str = "ready"
    is_error: bool = False
