from __future__ import annotations

import logging
import os
import ssl
import tempfile

import certifi

from apnspusher.core.errors import CredentialError
from apnspusher.domain.models import ClientIdentity, ConnectionMode


logger = logging.getLogger(__name__)


class TransportAuthenticator:
    """Answer the two TLS challenges of an APNs connection.

    Server trust is always verified against the CA bundle. A client
    certificate is presented only in certificate mode; in token mode the
    request is declined and the bearer header authenticates instead.
    """

    def __init__(self, mode: ConnectionMode, identity: ClientIdentity | None = None) -> None:
        self._mode = mode
        self._identity = identity

    @property
    def mode(self) -> ConnectionMode:
        return self._mode

    def client_identity(self) -> ClientIdentity | None:
        if self._mode is ConnectionMode.TOKEN:
            return None
        return self._identity

    def ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=certifi.where())
        context.verify_mode = ssl.CERT_REQUIRED
        context.check_hostname = True
        context.set_alpn_protocols(["h2", "http/1.1"])
        if self._mode is ConnectionMode.CERTIFICATE:
            identity = self.client_identity()
            if identity is None:
                raise CredentialError("certificate mode requires a client identity")
            _load_identity(context, identity)
        return context


def _load_identity(context: ssl.SSLContext, identity: ClientIdentity) -> None:
    # ssl only loads client certificates from files; keep them in a private temp dir.
    with tempfile.TemporaryDirectory(prefix="apnspusher-") as tmpdir:
        cert_path = os.path.join(tmpdir, "client.crt")
        key_path = os.path.join(tmpdir, "client.key")
        with open(cert_path, "wb") as handle:
            handle.write(identity.certificate_chain_pem())
        with open(os.open(key_path, os.O_WRONLY | os.O_CREAT, 0o600), "wb") as handle:
            handle.write(identity.private_key_pem())
        try:
            context.load_cert_chain(certfile=cert_path, keyfile=key_path)
        except ssl.SSLError as exc:
            raise CredentialError("Unable to use client identity for TLS") from exc
    logger.debug("client_identity_loaded subject=%s", identity.certificate.subject.rfc4514_string())
