import json
import logging
from datetime import datetime, timezone
from typing import Annotated, Any, Dict, List, Optional, Sequence

import httpx
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from forwarder.app.schemas.embed import EmbedField, MAX_EMBED_FIELDS

logger = logging.getLogger("forwarder.discord")

DEFAULT_EMBED_COLOR = 0x5865F2

_TITLE_LIMIT = 256
_DESCRIPTION_LIMIT = 4096


class DiscordDeliveryError(RuntimeError):
    """Raised when a webhook message could not be delivered."""


class DiscordRateLimited(RuntimeError):
    """
    Internal sentinel exception for HTTP 429 responses.

    This exception is explicitly retryable.
    """


class DiscordNotifier:
    """
    Async client for a single Discord webhook.

    Sends embeds and file attachments. Transport errors and rate limits
    are retried; any other non-2xx response fails immediately.
    """

    def __init__(
        self,
        http_client: Annotated[
            httpx.AsyncClient,
            "Persistent HTTP client",
        ],
        webhook_url: str,
        *,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.client = http_client
        self.webhook_url = webhook_url
        self.timeout_seconds = timeout_seconds

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def send_embed(
        self,
        description: str,
        *,
        title: Optional[str] = None,
        color: int = DEFAULT_EMBED_COLOR,
        timestamp: bool = False,
        fields: Optional[Sequence[EmbedField]] = None,
    ) -> None:
        """Post a single embed message."""
        payload = {
            "embeds": [
                build_embed(
                    description,
                    title=title,
                    color=color,
                    timestamp=timestamp,
                    fields=fields,
                )
            ]
        }
        await self._deliver(json=payload)
        logger.info("discord_embed_sent", extra={"title": title})

    async def send_file(
        self,
        description: str,
        *,
        content: bytes,
        file_name: str,
        title: Optional[str] = None,
        color: int = DEFAULT_EMBED_COLOR,
        timestamp: bool = False,
    ) -> None:
        """Post an embed with one file attached."""
        payload = {
            "embeds": [
                build_embed(
                    description,
                    title=title,
                    color=color,
                    timestamp=timestamp,
                )
            ]
        }
        await self._deliver(
            data={"payload_json": json.dumps(payload)},
            files={"files[0]": (file_name, content, "text/plain")},
        )
        logger.info(
            "discord_file_sent",
            extra={"title": title, "file_name": file_name},
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _deliver(self, **request: Any) -> None:
        try:
            await self._post(**request)
        except (httpx.HTTPError, DiscordRateLimited) as exc:
            logger.error(
                "discord_delivery_failed",
                extra={"error_type": type(exc).__name__},
            )
            raise DiscordDeliveryError(
                f"Discord webhook delivery failed: {type(exc).__name__}"
            ) from exc

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=0.5, min=0.5, max=5),
        retry=retry_if_exception_type(
            (httpx.TransportError, DiscordRateLimited)
        ),
        reraise=True,
    )
    async def _post(self, **request: Any) -> None:
        response = await self.client.post(
            self.webhook_url,
            timeout=self.timeout_seconds,
            **request,
        )

        if response.status_code == 429:
            raise DiscordRateLimited("discord_rate_limited")

        # Never log the webhook URL; it embeds the webhook token.
        if response.is_error:
            logger.warning(
                "discord_webhook_rejected",
                extra={
                    "status_code": response.status_code,
                    "response_body": response.text[:500],
                },
            )
        response.raise_for_status()


def build_embed(
    description: str,
    *,
    title: Optional[str] = None,
    color: int = DEFAULT_EMBED_COLOR,
    timestamp: bool = False,
    fields: Optional[Sequence[EmbedField]] = None,
) -> Dict[str, Any]:
    """Assemble a Discord embed object within the documented limits."""
    embed: Dict[str, Any] = {
        "description": description[:_DESCRIPTION_LIMIT],
        "color": color,
    }

    if title:
        embed["title"] = title[:_TITLE_LIMIT]

    if timestamp:
        embed["timestamp"] = datetime.now(timezone.utc).isoformat()

    if fields:
        embed["fields"] = _dump_fields(fields)

    return embed


def _dump_fields(fields: Sequence[EmbedField]) -> List[Dict[str, Any]]:
    return [f.model_dump() for f in list(fields)[:MAX_EMBED_FIELDS]]
