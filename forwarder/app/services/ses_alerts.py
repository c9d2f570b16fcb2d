"""
Formatting of SES event notifications into Discord alerts.

Presentation only. Nothing here influences whether a message is
trusted; that decision is made by the signature verifier upstream.
"""

from __future__ import annotations

import json
from dataclasses import dataclass

from pydantic import ValidationError

from forwarder.app.schemas.ses import SesNotification
from forwarder.app.services.discord import DEFAULT_EMBED_COLOR

BOUNCE_COLOR = 0xFFA500
COMPLAINT_COLOR = 0xFF0000
DELIVERY_COLOR = 0x57F287


class InvalidSesMessage(ValueError):
    """The Notification ``Message`` is not an SES JSON document."""


@dataclass(frozen=True)
class SesAlert:
    title: str
    description: str
    color: int


def parse_ses_message(message: str) -> SesNotification:
    try:
        data = json.loads(message)
    except json.JSONDecodeError as exc:
        raise InvalidSesMessage(f"Message is not valid JSON: {exc}") from exc

    if not isinstance(data, dict):
        raise InvalidSesMessage("Message JSON is not an object")

    try:
        return SesNotification.model_validate(data)
    except ValidationError as exc:
        raise InvalidSesMessage(f"Message is not an SES event: {exc}") from exc


def _join_or_unknown(addresses) -> str:
    return ", ".join(addresses) or "unknown"


def build_ses_alert(message: str) -> SesAlert:
    """
    Map an SES notification to a titled, colour-coded alert.

    Raises:
        InvalidSesMessage: ``message`` is not a JSON object.
    """
    notification = parse_ses_message(message)
    kind = notification.notification_type

    if kind == "Bounce":
        recipients = (
            notification.bounce.bounced_recipients if notification.bounce else []
        )
        emails = _join_or_unknown(
            r.email_address for r in recipients if r.email_address
        )
        return SesAlert(
            title="Bounce",
            description=f"📩 **Bounce** detected:\n`{emails}`",
            color=BOUNCE_COLOR,
        )

    if kind == "Complaint":
        recipients = (
            notification.complaint.complained_recipients
            if notification.complaint
            else []
        )
        emails = _join_or_unknown(
            r.email_address for r in recipients if r.email_address
        )
        return SesAlert(
            title="Complaint",
            description=f"🚨 **Complaint** received:\n`{emails}`",
            color=COMPLAINT_COLOR,
        )

    if kind == "Delivery":
        recipients = notification.delivery.recipients if notification.delivery else []
        emails = _join_or_unknown(recipients)
        return SesAlert(
            title="Delivery",
            description=f"✅ **Delivered to:**\n`{emails}`",
            color=DELIVERY_COLOR,
        )

    return SesAlert(
        title="Unhandled notification",
        description=(
            f"ℹ️ **Unhandled notification type** `{kind}`:\n"
            f"```json\n{message}\n```"
        ),
        color=DEFAULT_EMBED_COLOR,
    )
