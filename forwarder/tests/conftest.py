from unittest.mock import AsyncMock

import httpx
import pytest
from fastapi.testclient import TestClient

from forwarder.app.api.dependencies import (
    get_discord_notifier,
    get_signature_verifier,
)
from forwarder.app.core.config import Settings
from forwarder.app.main import create_app
from forwarder.app.services.discord import DiscordNotifier
from forwarder.app.services.signature import SnsSignatureVerifier
from forwarder.tests.fixtures.cert_factory import rsa_signing_identity


@pytest.fixture(scope="session")
def signing_identity():
    """One RSA keypair and self-signed certificate for the whole run."""
    return rsa_signing_identity()


class OutboundRecorder:
    """Answers outbound GETs (SubscribeURL) with a fixed status."""

    def __init__(self, status_code: int = 200):
        self.status_code = status_code
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return httpx.Response(self.status_code)


@pytest.fixture
def outbound():
    return OutboundRecorder()


@pytest.fixture
def verifier():
    mock = AsyncMock(spec=SnsSignatureVerifier)
    mock.verify.return_value = True
    return mock


@pytest.fixture
def notifier():
    return AsyncMock(spec=DiscordNotifier)


@pytest.fixture
def app(outbound, verifier, notifier):
    """
    Application wired without its lifespan.

    State the lifespan would create is set directly; the verifier and
    notifier are replaced with mocks.
    """
    application = create_app()
    application.state.settings = Settings(
        discord_webhook_url="https://discord.test/api/webhooks/1/token",
        max_log_size_mb=1,
        max_request_size_mb=1,
    )
    application.state.http_client = httpx.AsyncClient(
        transport=httpx.MockTransport(outbound)
    )
    application.dependency_overrides[get_signature_verifier] = lambda: verifier
    application.dependency_overrides[get_discord_notifier] = lambda: notifier
    return application


@pytest.fixture
def client(app):
    return TestClient(app)
