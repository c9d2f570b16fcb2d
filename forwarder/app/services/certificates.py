"""
Signing certificate retrieval for SNS signature verification.

The SigningCertURL is attacker-controlled input. Before anything is
fetched the URL must be https, point at an allow-listed host, and name a
``.pem`` object. Retrieval is bounded by a hard timeout; every failure
surfaces as CertificateFetchError so the verifier can degrade to a
negative result.
"""

from __future__ import annotations

import logging
import re
from typing import Optional

import anyio
import httpx
from cryptography import x509

from forwarder.app.services.errors import SignatureVerificationError

logger = logging.getLogger("forwarder.certificates")


class CertificateFetchError(SignatureVerificationError):
    """The signing certificate could not be retrieved or parsed."""


class UntrustedCertificateUrl(CertificateFetchError):
    """The SigningCertURL failed the scheme, host, or path checks."""


class SigningCertificateFetcher:
    """
    Fetch and parse the PEM signing certificate named by an envelope.

    Stateless apart from its configuration; the shared HTTP client is
    owned by the application lifespan.
    """

    def __init__(
        self,
        http_client: httpx.AsyncClient,
        *,
        timeout_seconds: float,
        host_pattern: Optional[str],
    ) -> None:
        self._client = http_client
        self._timeout_seconds = timeout_seconds
        self._host_re = re.compile(host_pattern) if host_pattern else None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def check_url(self, url: Optional[str]) -> httpx.URL:
        """Validate the certificate URL without touching the network."""
        if not url:
            raise UntrustedCertificateUrl("SigningCertURL is missing")

        try:
            parsed = httpx.URL(url)
        except httpx.InvalidURL as exc:
            raise UntrustedCertificateUrl(
                f"SigningCertURL is not a valid URL: {exc}"
            ) from exc

        if parsed.scheme != "https":
            raise UntrustedCertificateUrl(
                f"SigningCertURL must use https, got '{parsed.scheme}'"
            )

        host = parsed.host.lower()
        if self._host_re is not None and not self._host_re.fullmatch(host):
            raise UntrustedCertificateUrl(
                f"SigningCertURL host '{host}' is not allow-listed"
            )

        if not parsed.path.endswith(".pem"):
            raise UntrustedCertificateUrl(
                "SigningCertURL does not reference a .pem certificate"
            )

        return parsed

    async def fetch(self, url: Optional[str]) -> x509.Certificate:
        """
        Retrieve and parse the certificate.

        Raises:
            UntrustedCertificateUrl: URL rejected before any I/O.
            CertificateFetchError: transport error, timeout, non-2xx,
                empty body, or unparsable PEM.
        """
        target = self.check_url(url)

        try:
            with anyio.fail_after(self._timeout_seconds):
                response = await self._client.get(
                    target,
                    timeout=self._timeout_seconds,
                    follow_redirects=False,
                )
        except TimeoutError as exc:
            raise CertificateFetchError(
                f"certificate fetch exceeded {self._timeout_seconds}s"
            ) from exc
        except httpx.HTTPError as exc:
            raise CertificateFetchError(
                f"certificate fetch failed: {exc}"
            ) from exc

        if not response.is_success:
            raise CertificateFetchError(
                f"certificate host returned HTTP {response.status_code}"
            )

        body = response.content
        if not body or not body.strip():
            raise CertificateFetchError("certificate host returned an empty body")

        try:
            return x509.load_pem_x509_certificate(body)
        except ValueError as exc:
            raise CertificateFetchError(
                f"signing certificate is not valid PEM: {exc}"
            ) from exc
