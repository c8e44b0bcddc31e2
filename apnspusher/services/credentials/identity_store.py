from __future__ import annotations

import logging
from pathlib import Path
from threading import Lock
from typing import Iterable, Protocol

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric.types import CertificateIssuerPrivateKeyTypes


logger = logging.getLogger(__name__)

_KEY_SUFFIXES = {".pem", ".key", ".p8"}


def _public_der(key: CertificateIssuerPrivateKeyTypes) -> bytes:
    return key.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


def _certificate_public_der(certificate: x509.Certificate) -> bytes:
    return certificate.public_key().public_bytes(
        encoding=serialization.Encoding.DER,
        format=serialization.PublicFormat.SubjectPublicKeyInfo,
    )


class IdentityStore(Protocol):
    # Resolve the private key that belongs to a client certificate.
    def find_private_key(self, certificate: x509.Certificate) -> CertificateIssuerPrivateKeyTypes | None: ...


class InMemoryIdentityStore:
    def __init__(self, keys: Iterable[CertificateIssuerPrivateKeyTypes] = ()) -> None:
        self._keys: dict[bytes, CertificateIssuerPrivateKeyTypes] = {}
        self._lock = Lock()
        for key in keys:
            self.add(key)

    def add(self, key: CertificateIssuerPrivateKeyTypes) -> None:
        with self._lock:
            self._keys[_public_der(key)] = key

    def find_private_key(self, certificate: x509.Certificate) -> CertificateIssuerPrivateKeyTypes | None:
        with self._lock:
            return self._keys.get(_certificate_public_der(certificate))


class DirectoryIdentityStore:
    """Scan a directory of PEM private keys for the one matching a certificate.

    Files that are not private keys (or need a different password) are
    skipped. The directory is rescanned on every lookup so keys dropped in
    later are picked up.
    """

    def __init__(self, directory: str | Path, *, password: str | None = None) -> None:
        self._directory = Path(directory).expanduser()
        self._password = password.encode("utf-8") if password else None

    def _iter_keys(self) -> Iterable[CertificateIssuerPrivateKeyTypes]:
        if not self._directory.is_dir():
            logger.warning("identity_store_missing_dir path=%s", self._directory)
            return
        for path in sorted(self._directory.iterdir()):
            if path.suffix.lower() not in _KEY_SUFFIXES or not path.is_file():
                continue
            try:
                yield serialization.load_pem_private_key(path.read_bytes(), password=self._password)
            except (OSError, TypeError, ValueError):
                logger.debug("identity_store_skip path=%s", path)

    def find_private_key(self, certificate: x509.Certificate) -> CertificateIssuerPrivateKeyTypes | None:
        target = _certificate_public_der(certificate)
        for key in self._iter_keys():
            if _public_der(key) == target:
                return key
        return None
