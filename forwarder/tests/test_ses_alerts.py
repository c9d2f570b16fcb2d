import json

import pytest

from forwarder.app.services.discord import DEFAULT_EMBED_COLOR
from forwarder.app.services.ses_alerts import (
    BOUNCE_COLOR,
    COMPLAINT_COLOR,
    DELIVERY_COLOR,
    InvalidSesMessage,
    build_ses_alert,
)
from forwarder.tests.fixtures.envelopes import ses_bounce_message


def test_bounce_lists_every_recipient():
    alert = build_ses_alert(ses_bounce_message("a@example.com", "b@example.com"))

    assert alert.title == "Bounce"
    assert alert.color == BOUNCE_COLOR
    assert alert.description == "📩 **Bounce** detected:\n`a@example.com, b@example.com`"


def test_complaint_alert():
    message = json.dumps(
        {
            "notificationType": "Complaint",
            "complaint": {"complainedRecipients": [{"emailAddress": "c@example.com"}]},
        }
    )

    alert = build_ses_alert(message)

    assert alert.color == COMPLAINT_COLOR
    assert "🚨 **Complaint** received:" in alert.description
    assert "`c@example.com`" in alert.description


def test_delivery_alert():
    message = json.dumps(
        {
            "notificationType": "Delivery",
            "mail": {"messageId": "abc"},
            "delivery": {"recipients": ["d@example.com"]},
        }
    )

    alert = build_ses_alert(message)

    assert alert.color == DELIVERY_COLOR
    assert alert.description == "✅ **Delivered to:**\n`d@example.com`"


@pytest.mark.parametrize("kind", ["Bounce", "Complaint", "Delivery"])
def test_missing_recipients_render_as_unknown(kind):
    alert = build_ses_alert(json.dumps({"notificationType": kind}))

    assert "`unknown`" in alert.description


def test_unhandled_type_includes_raw_message():
    message = json.dumps({"notificationType": "Open", "open": {"ipAddress": "1.2.3.4"}})

    alert = build_ses_alert(message)

    assert alert.title == "Unhandled notification"
    assert alert.color == DEFAULT_EMBED_COLOR
    assert "`Open`" in alert.description
    assert f"```json\n{message}\n```" in alert.description


@pytest.mark.parametrize("message", ["not json", "[1, 2]", '"text"'])
def test_non_object_message_is_rejected(message):
    with pytest.raises(InvalidSesMessage):
        build_ses_alert(message)


@pytest.mark.parametrize(
    "bounce",
    [
        {"bouncedRecipients": [{}]},
        {"bouncedRecipients": [{"emailAddress": None}, "junk"]},
        {"bouncedRecipients": None},
        None,
        "not an object",
    ],
)
def test_malformed_bounce_still_alerts(bounce):
    message = json.dumps({"notificationType": "Bounce", "bounce": bounce})

    alert = build_ses_alert(message)

    assert alert.title == "Bounce"
    assert alert.description == "📩 **Bounce** detected:\n`unknown`"


def test_missing_addresses_are_skipped():
    message = json.dumps(
        {
            "notificationType": "Complaint",
            "complaint": {
                "complainedRecipients": [{}, {"emailAddress": "c@example.com"}]
            },
        }
    )

    alert = build_ses_alert(message)

    assert alert.description.endswith("`c@example.com`")


def test_non_string_delivery_recipients_are_skipped():
    message = json.dumps(
        {"notificationType": "Delivery", "delivery": {"recipients": [1, "d@example.com"]}}
    )

    assert build_ses_alert(message).description.endswith("`d@example.com`")


def test_non_string_type_is_reported_raw():
    message = json.dumps({"notificationType": 42})

    alert = build_ses_alert(message)

    assert alert.title == "Unhandled notification"
    assert "`42`" in alert.description
