"""
SNS message signature verification.

Rebuilds the exact string AWS SNS signed, fetches the signing
certificate, and verifies the RSA signature over that string.

Failure policy:
    Every domain failure (unsupported type, missing field, untrusted or
    unreachable certificate, malformed base64, signature mismatch)
    converges to a single ``False``. The cause is only visible in the
    WARNING log line. Logic errors (TypeError, AttributeError, ...) are
    not caught and propagate to the caller.
"""

from __future__ import annotations

import base64
import logging
from typing import Dict, Optional, Tuple

from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric import padding, rsa

from forwarder.app.schemas.envelope import MessageType, NotificationEnvelope
from forwarder.app.services.certificates import SigningCertificateFetcher
from forwarder.app.services.errors import SignatureVerificationError

logger = logging.getLogger("forwarder.signature")


class UnsupportedMessageType(SignatureVerificationError):
    """The envelope type has no canonical string construction."""


class CanonicalizationError(SignatureVerificationError):
    """A field required by the canonical string is absent."""


# ----------------------------------------------------------------------
# Canonical string construction
# ----------------------------------------------------------------------

# (wire key, envelope attribute) in the exact order SNS signs them.
_CONFIRMATION_KEYS: Tuple[Tuple[str, str], ...] = (
    ("Message", "message"),
    ("MessageId", "message_id"),
    ("SubscribeURL", "subscribe_url"),
    ("Timestamp", "timestamp"),
    ("Token", "token"),
    ("TopicArn", "topic_arn"),
    ("Type", "type"),
)

_CANONICAL_KEYS: Dict[MessageType, Tuple[Tuple[str, str], ...]] = {
    MessageType.NOTIFICATION: (
        ("Message", "message"),
        ("MessageId", "message_id"),
        ("Subject", "subject"),
        ("Timestamp", "timestamp"),
        ("TopicArn", "topic_arn"),
        ("Type", "type"),
    ),
    MessageType.SUBSCRIPTION_CONFIRMATION: _CONFIRMATION_KEYS,
    MessageType.UNSUBSCRIBE_CONFIRMATION: _CONFIRMATION_KEYS,
}

# Omitted entirely (key included) when empty
_OPTIONAL_KEYS = frozenset({"Subject"})


def build_string_to_sign(envelope: NotificationEnvelope) -> str:
    """
    Reconstruct the canonical string SNS signed for this envelope.

    Each contributing field is emitted as ``key\\nvalue\\n``.

    Raises:
        UnsupportedMessageType: ``type`` is not a known MessageType.
        CanonicalizationError: a required contributing field is None.
    """
    message_type = envelope.message_type
    if message_type is None:
        raise UnsupportedMessageType(
            f"unsupported message type '{envelope.type}'"
        )

    parts = []
    for key, attribute in _CANONICAL_KEYS[message_type]:
        value = getattr(envelope, attribute)

        if key in _OPTIONAL_KEYS and not value:
            continue

        if value is None:
            raise CanonicalizationError(
                f"{message_type.value} envelope is missing {key}"
            )

        parts.append(f"{key}\n{value}\n")

    return "".join(parts)


# SignatureVersion 1 is SHA1withRSA; version 2 is SHA256withRSA.
_SIGNATURE_HASHES = {
    "1": hashes.SHA1,
    "2": hashes.SHA256,
}


def _hash_for_version(version: Optional[str]) -> hashes.HashAlgorithm:
    algorithm = _SIGNATURE_HASHES.get(version or "1")
    if algorithm is None:
        raise SignatureVerificationError(
            f"unsupported SignatureVersion '{version}'"
        )
    return algorithm()


def _decode_signature(signature: Optional[str]) -> bytes:
    if not signature:
        raise SignatureVerificationError("Signature is missing")
    return base64.b64decode(signature, validate=True)


# ----------------------------------------------------------------------
# Verifier
# ----------------------------------------------------------------------

class SnsSignatureVerifier:
    """
    Signature verification engine for inbound SNS envelopes.

    The verifier keeps no per-message state and is safe to share
    across concurrent requests.
    """

    def __init__(self, certificate_fetcher: SigningCertificateFetcher) -> None:
        self._fetcher = certificate_fetcher

    async def verify(self, envelope: NotificationEnvelope) -> bool:
        """
        Return True only if the envelope signature is valid.

        Never raises for domain failures.
        """
        try:
            # Cheap local checks first; the network is touched last.
            string_to_sign = build_string_to_sign(envelope)
            algorithm = _hash_for_version(envelope.signature_version)
            signature = _decode_signature(envelope.signature)

            certificate = await self._fetcher.fetch(envelope.signing_cert_url)

            public_key = certificate.public_key()
            if not isinstance(public_key, rsa.RSAPublicKey):
                raise SignatureVerificationError(
                    "signing certificate does not carry an RSA key"
                )

            public_key.verify(
                signature,
                string_to_sign.encode("utf-8"),
                padding.PKCS1v15(),
                algorithm,
            )

        except InvalidSignature:
            logger.warning(
                "sns_signature_mismatch",
                extra={
                    "message_id": envelope.message_id,
                    "message_type": envelope.type,
                },
            )
            return False

        except (SignatureVerificationError, ValueError) as exc:
            # ValueError covers binascii.Error from base64 decoding
            logger.warning(
                "sns_signature_verification_failed",
                extra={
                    "message_id": envelope.message_id,
                    "message_type": envelope.type,
                    "reason": str(exc),
                    "error_type": type(exc).__name__,
                },
            )
            return False

        logger.debug(
            "sns_signature_verified",
            extra={"message_id": envelope.message_id},
        )
        return True
