"""
Dependency providers shared by the API routers.

Collaborators are built per request from state the lifespan placed on
``app.state``. Tests replace them through ``app.dependency_overrides``.
"""

import httpx
from fastapi import Request

from forwarder.app.core.config import Settings
from forwarder.app.services.certificates import SigningCertificateFetcher
from forwarder.app.services.discord import DiscordNotifier
from forwarder.app.services.signature import SnsSignatureVerifier


def get_app_settings(request: Request) -> Settings:
    settings = getattr(request.app.state, "settings", None)
    if settings is None:
        raise RuntimeError("settings not initialized")
    return settings


def get_http_client(request: Request) -> httpx.AsyncClient:
    client = getattr(request.app.state, "http_client", None)
    if client is None:
        raise RuntimeError("http client not initialized")
    return client


def get_signature_verifier(request: Request) -> SnsSignatureVerifier:
    """
    Instantiate the SNS signature verifier.

    The verifier is stateless; only the HTTP transport is shared.
    """
    settings = get_app_settings(request)
    return SnsSignatureVerifier(
        SigningCertificateFetcher(
            get_http_client(request),
            timeout_seconds=settings.cert_fetch_timeout_seconds,
            host_pattern=settings.signing_cert_host_pattern,
        )
    )


def get_discord_notifier(request: Request) -> DiscordNotifier:
    settings = get_app_settings(request)
    return DiscordNotifier(
        http_client=get_http_client(request),
        webhook_url=settings.discord_webhook_url.get_secret_value(),
        timeout_seconds=settings.discord_timeout_seconds,
    )
