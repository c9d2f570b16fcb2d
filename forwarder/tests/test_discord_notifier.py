import json

import httpx
import pytest
from tenacity import wait_none

from forwarder.app.schemas.embed import EmbedField
from forwarder.app.services.discord import (
    DEFAULT_EMBED_COLOR,
    DiscordDeliveryError,
    DiscordNotifier,
    build_embed,
)

pytestmark = pytest.mark.anyio

WEBHOOK_URL = "https://discord.test/api/webhooks/1/token"


@pytest.fixture(autouse=True)
def no_retry_backoff(monkeypatch):
    monkeypatch.setattr(DiscordNotifier._post.retry, "wait", wait_none())


class Webhook:
    def __init__(self, *statuses):
        self.statuses = list(statuses) or [204]
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        return httpx.Response(status)


def _notifier(webhook: Webhook) -> DiscordNotifier:
    client = httpx.AsyncClient(transport=httpx.MockTransport(webhook))
    return DiscordNotifier(client, WEBHOOK_URL, timeout_seconds=1.0)


async def test_send_embed_posts_embed_payload():
    webhook = Webhook()
    notifier = _notifier(webhook)

    await notifier.send_embed(
        "body",
        title="Bounce",
        color=0xFFA500,
        fields=[EmbedField(name="Host", value="web01", inline=True)],
    )

    assert len(webhook.requests) == 1
    request = webhook.requests[0]
    assert request.method == "POST"
    assert str(request.url) == WEBHOOK_URL

    payload = json.loads(request.content)
    assert payload == {
        "embeds": [
            {
                "description": "body",
                "color": 0xFFA500,
                "title": "Bounce",
                "fields": [{"name": "Host", "value": "web01", "inline": True}],
            }
        ]
    }


async def test_send_file_uses_multipart_upload():
    webhook = Webhook()
    notifier = _notifier(webhook)

    await notifier.send_file(
        "Full scan log attached:",
        content=b"[12:00:00] Warning: something\n",
        file_name="scan.log",
        title="Full Log - web01",
    )

    request = webhook.requests[0]
    assert request.headers["content-type"].startswith("multipart/form-data")

    body = request.content
    assert b'name="payload_json"' in body
    assert b'filename="scan.log"' in body
    assert b"[12:00:00] Warning: something" in body
    assert b"Full Log - web01" in body


async def test_rate_limit_is_retried():
    webhook = Webhook(429, 204)
    notifier = _notifier(webhook)

    await notifier.send_embed("body")

    assert len(webhook.requests) == 2


async def test_persistent_rate_limit_fails_after_retries():
    webhook = Webhook(429)
    notifier = _notifier(webhook)

    with pytest.raises(DiscordDeliveryError):
        await notifier.send_embed("body")

    assert len(webhook.requests) == 3


async def test_server_error_is_not_retried():
    webhook = Webhook(500)
    notifier = _notifier(webhook)

    with pytest.raises(DiscordDeliveryError):
        await notifier.send_embed("body")

    assert len(webhook.requests) == 1


async def test_transport_error_is_retried_then_reported():
    attempts = []

    def handler(request):
        attempts.append(request)
        raise httpx.ConnectError("unreachable")

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    notifier = DiscordNotifier(client, WEBHOOK_URL)

    with pytest.raises(DiscordDeliveryError):
        await notifier.send_embed("body")

    assert len(attempts) == 3


def test_build_embed_truncates_title_and_description():
    embed = build_embed("d" * 5000, title="t" * 300)

    assert len(embed["description"]) == 4096
    assert len(embed["title"]) == 256
    assert embed["color"] == DEFAULT_EMBED_COLOR


def test_build_embed_omits_empty_optional_keys():
    embed = build_embed("only a description")

    assert set(embed) == {"description", "color"}


def test_build_embed_timestamp_is_iso8601_utc():
    embed = build_embed("x", timestamp=True)

    assert embed["timestamp"].endswith("+00:00")


def test_build_embed_caps_field_count():
    fields = [EmbedField(name=f"f{i}", value=str(i)) for i in range(30)]

    embed = build_embed("x", fields=fields)

    assert len(embed["fields"]) == 25
    assert embed["fields"][-1]["name"] == "f24"
