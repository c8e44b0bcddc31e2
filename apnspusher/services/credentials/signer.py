from __future__ import annotations

import logging

import jwt
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec


logger = logging.getLogger(__name__)

_ALGORITHM = "ES256"


def sign_bearer(private_key_pem: str, key_id: str, team_id: str, issued_at: int) -> str:
    # Return "" on any key or signing failure; callers surface it as a credential error.
    try:
        key = serialization.load_pem_private_key(private_key_pem.encode("utf-8"), password=None)
    except (TypeError, ValueError) as exc:
        logger.warning("bearer_key_load_failed key_id=%s error=%s", key_id, type(exc).__name__)
        return ""
    if not isinstance(key, ec.EllipticCurvePrivateKey) or not isinstance(key.curve, ec.SECP256R1):
        logger.warning("bearer_key_not_p256 key_id=%s", key_id)
        return ""
    try:
        return jwt.encode(
            {"iss": team_id, "iat": issued_at},
            key,
            algorithm=_ALGORITHM,
            headers={"kid": key_id},
        )
    except (jwt.PyJWTError, TypeError, ValueError) as exc:
        logger.warning("bearer_sign_failed key_id=%s error=%s", key_id, type(exc).__name__)
        return ""
