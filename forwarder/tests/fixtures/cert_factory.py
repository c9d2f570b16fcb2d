"""
Test-only signing identities.

Generates a real RSA keypair and a self-signed X.509 certificate so that
signature verification can be exercised end to end without AWS.
"""

from __future__ import annotations

import base64
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import ec, padding, rsa
from cryptography.x509.oid import NameOID

CERT_URL = "https://sns.us-east-1.amazonaws.com/SimpleNotificationService-test.pem"


@dataclass(frozen=True)
class SigningIdentity:
    private_key: object
    certificate_pem: bytes

    def sign(self, data: str, algorithm: hashes.HashAlgorithm | None = None) -> str:
        """Return a base64 RSA PKCS#1 v1.5 signature over ``data``."""
        signature = self.private_key.sign(
            data.encode("utf-8"),
            padding.PKCS1v15(),
            algorithm or hashes.SHA1(),
        )
        return base64.b64encode(signature).decode("ascii")


def _self_signed(private_key, hash_algorithm: hashes.HashAlgorithm) -> bytes:
    name = x509.Name(
        [x509.NameAttribute(NameOID.COMMON_NAME, "sns.amazonaws.com")]
    )
    now = datetime.now(timezone.utc)

    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(private_key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .sign(private_key, hash_algorithm)
    )
    return certificate.public_bytes(serialization.Encoding.PEM)


def rsa_signing_identity() -> SigningIdentity:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return SigningIdentity(
        private_key=key,
        certificate_pem=_self_signed(key, hashes.SHA256()),
    )


def ec_certificate_pem() -> bytes:
    """A well-formed certificate whose key is not RSA."""
    key = ec.generate_private_key(ec.SECP256R1())
    return _self_signed(key, hashes.SHA256())
