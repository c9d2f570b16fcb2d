"""
SNS notification envelope schema.

Mirrors the JSON document AWS SNS posts to HTTP/S subscribers. Wire
names are preserved exactly through aliases so that the envelope can be
validated straight from the request body.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class MessageType(str, Enum):
    """
    Closed set of SNS message types this service understands.

    Anything else is rejected by the verification engine.
    """

    SUBSCRIPTION_CONFIRMATION = "SubscriptionConfirmation"
    UNSUBSCRIBE_CONFIRMATION = "UnsubscribeConfirmation"
    NOTIFICATION = "Notification"


class NotificationEnvelope(BaseModel):
    """
    One inbound signed SNS message.

    Constructed per request and discarded after dispatch. ``type`` is
    kept as a raw string so that unsupported values reach the verifier
    and fail there rather than at parse time.
    """

    type: str = Field(..., alias="Type")
    message_id: str = Field(..., alias="MessageId")
    message: str = Field(..., alias="Message")

    topic_arn: Optional[str] = Field(None, alias="TopicArn")
    subject: Optional[str] = Field(None, alias="Subject")
    timestamp: Optional[str] = Field(None, alias="Timestamp")

    signature_version: Optional[str] = Field(None, alias="SignatureVersion")
    signature: Optional[str] = Field(None, alias="Signature")
    signing_cert_url: Optional[str] = Field(None, alias="SigningCertURL")

    # Confirmation types only
    subscribe_url: Optional[str] = Field(None, alias="SubscribeURL")
    token: Optional[str] = Field(None, alias="Token")

    unsubscribe_url: Optional[str] = Field(None, alias="UnsubscribeURL")

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def message_type(self) -> Optional[MessageType]:
        """The enum member for ``type``, or None when unsupported."""
        try:
            return MessageType(self.type)
        except ValueError:
            return None
