from __future__ import annotations

import json

from apnspusher.core.errors import (
    InvalidHeaderValue,
    InvalidPayload,
    InvalidPriority,
    InvalidPushType,
    SigningError,
)
from apnspusher.domain.models import PRIORITIES, PUSH_TYPES, Credential, PushRequest, TokenCredential
from apnspusher.services.credentials.cache import SignatureCache


DEVICE_PATH_TEMPLATE = "/3/device/{token}"
BEARER_SCHEME = "bearer"
MAX_COLLAPSE_ID_BYTES = 64


def canonicalize_payload(raw_payload: str) -> bytes:
    # APNs rejects oversized bodies, so strip formatting by round-tripping through json.
    try:
        parsed = json.loads(raw_payload)
    except (TypeError, ValueError) as exc:
        raise InvalidPayload("Invalid payload format") from exc
    if not isinstance(parsed, dict):
        raise InvalidPayload("Invalid payload format")
    return json.dumps(parsed, separators=(",", ":"), ensure_ascii=False).encode("utf-8")


def device_url(base_url: str, token: str) -> str:
    return base_url.rstrip("/") + DEVICE_PATH_TEMPLATE.format(token=token)


def _check_header_value(name: str, value: str) -> None:
    if not (value.isascii() and value.isprintable()):
        raise InvalidHeaderValue(f"{name} must be printable ASCII")


class RequestBuilder:
    def __init__(self, base_url: str, signature_cache: SignatureCache | None = None) -> None:
        self._base_url = base_url
        self._signature_cache = signature_cache

    @property
    def base_url(self) -> str:
        return self._base_url

    def build(
        self,
        target_token: str,
        credential: Credential,
        topic: str,
        priority: int,
        push_type: str,
        collapse_id: str | None,
        raw_payload: str,
    ) -> PushRequest:
        if priority not in PRIORITIES:
            raise InvalidPriority(f"priority must be one of {PRIORITIES}")
        if push_type not in PUSH_TYPES:
            raise InvalidPushType(f"push type must be one of {PUSH_TYPES}")
        _check_header_value("topic", topic)
        if collapse_id:
            _check_header_value("collapse ID", collapse_id)
            if len(collapse_id) > MAX_COLLAPSE_ID_BYTES:
                raise InvalidHeaderValue(f"collapse ID must be at most {MAX_COLLAPSE_ID_BYTES} bytes")
        body = canonicalize_payload(raw_payload)
        authorization = None
        if isinstance(credential, TokenCredential):
            authorization = f"{BEARER_SCHEME} {self._bearer()}"
        return PushRequest(
            target_token=target_token,
            url=device_url(self._base_url, target_token),
            topic=topic,
            priority=priority,
            push_type=push_type,
            body=body,
            collapse_id=collapse_id or None,
            authorization=authorization,
        )

    def _bearer(self) -> str:
        if self._signature_cache is None:
            raise SigningError("token mode requires a signature cache")
        signature = self._signature_cache.get_signature()
        if not signature:
            raise SigningError("Unable to sign provider token with the signing key")
        return signature
