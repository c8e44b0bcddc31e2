from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec
from cryptography.x509.oid import NameOID


def generate_ec_key(curve: ec.EllipticCurve | None = None) -> ec.EllipticCurvePrivateKey:
    return ec.generate_private_key(curve or ec.SECP256R1())


def private_key_pem(key: ec.EllipticCurvePrivateKey) -> str:
    # Same PKCS#8 layout as the .p8 files downloaded from the developer portal.
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("ascii")


def write_signing_key(directory: Path, name: str = "AuthKey_ABCDE12345.p8") -> tuple[Path, ec.EllipticCurvePrivateKey]:
    key = generate_ec_key()
    path = directory / name
    path.write_text(private_key_pem(key), encoding="utf-8")
    return path, key


def make_certificate(
    common_name: str | None,
    key: ec.EllipticCurvePrivateKey | None = None,
) -> tuple[x509.Certificate, ec.EllipticCurvePrivateKey]:
    # Self-signed stand-in for an Apple-issued push certificate.
    key = key or generate_ec_key()
    attributes = [x509.NameAttribute(NameOID.ORGANIZATION_NAME, "Example Inc")]
    if common_name is not None:
        attributes.insert(0, x509.NameAttribute(NameOID.COMMON_NAME, common_name))
    name = x509.Name(attributes)
    now = datetime.now(timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=365))
        .sign(key, hashes.SHA256())
    )
    return certificate, key


def write_certificate(
    directory: Path,
    certificate: x509.Certificate,
    *,
    name: str = "aps.cer",
    encoding: serialization.Encoding = serialization.Encoding.DER,
) -> Path:
    path = directory / name
    path.write_bytes(certificate.public_bytes(encoding))
    return path
