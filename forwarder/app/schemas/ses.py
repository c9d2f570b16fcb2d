"""
Amazon SES event notification schema.

This is the JSON document carried in the ``Message`` of an SNS
Notification when SES publishes bounce, complaint, or delivery events.
Only the recipient lists are modelled; everything else is ignored.

Malformed recipient data degrades to "no recipient" rather than failing
validation, so the event is still alerted on.
"""

from __future__ import annotations

import json
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _SesModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


def _list_or_empty(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


class Recipient(_SesModel):
    email_address: Optional[str] = Field(None, alias="emailAddress")

    @field_validator("email_address", mode="before")
    @classmethod
    def non_string_is_missing(cls, v: Any) -> Optional[str]:
        return v if isinstance(v, str) and v else None


class Bounce(_SesModel):
    bounced_recipients: List[Recipient] = Field(
        default_factory=list, alias="bouncedRecipients"
    )

    @field_validator("bounced_recipients", mode="before")
    @classmethod
    def recipients_as_list(cls, v: Any) -> List[Any]:
        return [r for r in _list_or_empty(v) if isinstance(r, dict)]


class Complaint(_SesModel):
    complained_recipients: List[Recipient] = Field(
        default_factory=list, alias="complainedRecipients"
    )

    @field_validator("complained_recipients", mode="before")
    @classmethod
    def recipients_as_list(cls, v: Any) -> List[Any]:
        return [r for r in _list_or_empty(v) if isinstance(r, dict)]


class Delivery(_SesModel):
    recipients: List[str] = Field(default_factory=list)

    @field_validator("recipients", mode="before")
    @classmethod
    def addresses_only(cls, v: Any) -> List[str]:
        return [r for r in _list_or_empty(v) if isinstance(r, str) and r]


class SesNotification(_SesModel):
    notification_type: str = Field("", alias="notificationType")
    bounce: Optional[Bounce] = None
    complaint: Optional[Complaint] = None
    delivery: Optional[Delivery] = None

    @field_validator("notification_type", mode="before")
    @classmethod
    def type_as_text(cls, v: Any) -> str:
        if v is None:
            return ""
        return v if isinstance(v, str) else json.dumps(v)

    @field_validator("bounce", "complaint", "delivery", mode="before")
    @classmethod
    def non_object_is_missing(cls, v: Any) -> Any:
        return v if isinstance(v, dict) else None
