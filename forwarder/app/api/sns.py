"""
AWS SNS webhook handler.

Accepts SNS HTTP/S deliveries, verifies their signatures, and forwards
SES email events (bounce, complaint, delivery) to Discord as
colour-coded embeds.

Supported SNS message types:
- SubscriptionConfirmation: verified, then confirmed via SubscribeURL
- UnsubscribeConfirmation:  verified and acknowledged
- Notification:             verified, decoded, forwarded to Discord
"""

import json
import logging
from typing import Annotated

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.responses import PlainTextResponse
from pydantic import ValidationError

from forwarder.app.api.dependencies import (
    get_app_settings,
    get_discord_notifier,
    get_http_client,
    get_signature_verifier,
)
from forwarder.app.core.config import Settings
from forwarder.app.schemas.envelope import MessageType, NotificationEnvelope
from forwarder.app.services.discord import DiscordDeliveryError, DiscordNotifier
from forwarder.app.services.ses_alerts import InvalidSesMessage, build_ses_alert
from forwarder.app.services.signature import SnsSignatureVerifier

logger = logging.getLogger("forwarder.sns")

router = APIRouter(tags=["SNS"])

_SUBSCRIBE_TIMEOUT_SECONDS = 10.0


# =============================================================================
# Body parsing
# =============================================================================

def _payload_too_large(limit_mb: int) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        detail=f"Body exceeds the {limit_mb}MB limit.",
    )


async def _read_bounded_body(request: Request, limit_mb: int) -> bytes:
    """
    Read the request body, stopping as soon as it exceeds ``limit_mb``.

    A declared Content-Length over the limit is rejected before any
    chunk is received.
    """
    max_bytes = limit_mb * 1024 * 1024

    declared = request.headers.get("content-length")
    if declared is not None and declared.isdigit() and int(declared) > max_bytes:
        logger.warning("sns_body_too_large", extra={"declared_bytes": int(declared)})
        raise _payload_too_large(limit_mb)

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            logger.warning("sns_body_too_large", extra={"received_bytes": len(body)})
            raise _payload_too_large(limit_mb)

    return bytes(body)


async def parse_envelope(
    request: Request,
    settings: Annotated[Settings, Depends(get_app_settings)],
) -> NotificationEnvelope:
    """
    Decode the raw request body into an envelope.

    SNS posts JSON with ``Content-Type: text/plain``, so the body is read
    raw regardless of the declared media type.
    """
    raw = await _read_bounded_body(request, settings.max_request_size_mb)

    try:
        body = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("sns_body_parse_failed")
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request: Invalid body format",
        )

    if not isinstance(body, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request: Invalid body format",
        )

    try:
        envelope = NotificationEnvelope.model_validate(body)
    except ValidationError:
        logger.error(
            "sns_invalid_structure",
            extra={"keys": sorted(body.keys())},
        )
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request: Missing required SNS fields",
        )

    if not (envelope.type and envelope.message_id and envelope.message):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request: Missing required SNS fields",
        )

    return envelope


# =============================================================================
# POST /sns
# =============================================================================

@router.post(
    "/sns",
    summary="Receive an AWS SNS delivery",
    response_class=PlainTextResponse,
    responses={
        400: {"description": "Malformed or unknown SNS message"},
        403: {"description": "Invalid SNS signature"},
        413: {"description": "Payload too large"},
        500: {"description": "Subscription confirmation failure"},
        502: {"description": "Discord delivery failure"},
    },
)
async def receive_sns(
    envelope: Annotated[NotificationEnvelope, Depends(parse_envelope)],
    verifier: Annotated[SnsSignatureVerifier, Depends(get_signature_verifier)],
    notifier: Annotated[DiscordNotifier, Depends(get_discord_notifier)],
    http_client: Annotated[httpx.AsyncClient, Depends(get_http_client)],
) -> PlainTextResponse:
    logger.info(
        "sns_request_received",
        extra={"message_type": envelope.type, "message_id": envelope.message_id},
    )
    logger.debug("sns_payload", extra={"payload": envelope.model_dump()})

    message_type = envelope.message_type

    if message_type is None:
        logger.error("sns_unknown_type", extra={"message_type": envelope.type})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request: Unknown SNS Type",
        )

    if not await verifier.verify(envelope):
        logger.error(
            "sns_signature_rejected",
            extra={"message_id": envelope.message_id},
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Forbidden: Invalid SNS signature",
        )

    if message_type is MessageType.SUBSCRIPTION_CONFIRMATION:
        return await _confirm_subscription(envelope, http_client)

    if message_type is MessageType.UNSUBSCRIBE_CONFIRMATION:
        logger.info(
            "sns_unsubscribe_confirmed",
            extra={"topic_arn": envelope.topic_arn},
        )
        return PlainTextResponse("Unsubscribe acknowledged")

    return await _forward_notification(envelope, notifier)


# =============================================================================
# Handlers
# =============================================================================

async def _confirm_subscription(
    envelope: NotificationEnvelope,
    http_client: httpx.AsyncClient,
) -> PlainTextResponse:
    if not envelope.subscribe_url:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing SubscribeURL",
        )

    logger.info(
        "sns_subscription_confirming",
        extra={"topic_arn": envelope.topic_arn},
    )

    try:
        response = await http_client.get(
            envelope.subscribe_url,
            timeout=_SUBSCRIBE_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
    except httpx.HTTPError as exc:
        logger.error(
            "sns_subscription_confirmation_failed",
            extra={"error_type": type(exc).__name__},
        )
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to confirm subscription",
        ) from exc

    logger.info(
        "sns_subscription_confirmed",
        extra={"topic_arn": envelope.topic_arn},
    )
    return PlainTextResponse("Subscription confirmed")


async def _forward_notification(
    envelope: NotificationEnvelope,
    notifier: DiscordNotifier,
) -> PlainTextResponse:
    try:
        alert = build_ses_alert(envelope.message)
    except InvalidSesMessage as exc:
        logger.error("sns_message_parse_failed", extra={"reason": str(exc)})
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Bad Request: Invalid JSON body",
        ) from exc

    try:
        await notifier.send_embed(
            alert.description,
            title=alert.title,
            color=alert.color,
            timestamp=True,
        )
    except DiscordDeliveryError as exc:
        # Non-2xx makes SNS redeliver under its retry policy
        raise HTTPException(
            status_code=status.HTTP_502_BAD_GATEWAY,
            detail="Failed to forward notification",
        ) from exc

    logger.info(
        "sns_notification_forwarded",
        extra={"message_id": envelope.message_id, "alert": alert.title},
    )
    return PlainTextResponse("Notification processed")
