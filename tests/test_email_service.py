import json

import httpx

from email_service import EmailService, HttpEmailChannel, LogEmailChannel, format_status, order_label
from tests.helpers import FailingChannel, RecordingChannel

ORDER = {
    "id": "42",
    "order_number": "ORD-1A2B3C4D",
    "status": "out_for_delivery",
    "subtotal": 21.49,
    "delivery_fee": 2.99,
    "tax": 2.15,
    "total": 26.63,
    "delivery_address": "42 Elm Street",
    "restaurant": {"name": "Mama Mia"},
    "order_items": [
        {"quantity": 1, "total_price": 12.99, "food_item": {"name": "Margherita Pizza"}},
        {"quantity": 1, "total_price": 8.50, "food_item": None},
    ],
}


def test_format_helpers():
    assert format_status("out_for_delivery") == "OUT FOR DELIVERY"
    assert order_label(ORDER) == "#ORD-1A2B3C4D"
    assert order_label({"id": "7"}) == "#7"


def test_confirmation_email_lists_items_and_totals():
    channel = RecordingChannel()

    assert EmailService(channel).send_order_confirmation_email(ORDER, "jane@mail.com") is True

    message = channel.messages[0]
    assert message.event_type == "ORDER_CONFIRMED"
    assert message.recipient == "jane@mail.com"
    assert "#ORD-1A2B3C4D" in message.subject
    assert "1 x Margherita Pizza - $12.99" in message.text
    assert "Unknown item" in message.text
    assert "Total: $26.63" in message.text
    assert message.html.startswith("<!DOCTYPE html>")


def test_status_update_email_uses_given_status():
    channel = RecordingChannel()

    EmailService(channel).send_order_status_update_email(ORDER, "jane@mail.com", "delivered")

    message = channel.messages[0]
    assert message.event_type == "ORDER_STATUS"
    assert message.subject == "Order Update - #ORD-1A2B3C4D - DELIVERED"
    assert "Enjoy your meal" in message.text


def test_payment_and_otp_emails():
    channel = RecordingChannel()
    service = EmailService(channel)

    service.send_payment_verification_email(ORDER, "jane@mail.com")
    service.send_otp_email("jane@mail.com", "654321", "Jane")

    assert [m.event_type for m in channel.messages] == ["PAYMENT_VERIFICATION", "OTP"]
    assert "654321" in channel.messages[1].text
    assert channel.messages[1].text.startswith("Hi Jane,")


def test_failures_are_reported_not_raised():
    service = EmailService(FailingChannel())
    assert service.send_otp_email("jane@mail.com", "123456") is False
    assert service.send_order_confirmation_email(ORDER, "jane@mail.com") is False


def test_missing_recipient_is_skipped():
    channel = RecordingChannel()
    assert EmailService(channel).send_order_status_update_email(ORDER, "") is False
    assert channel.messages == []


def test_log_channel_is_the_default():
    assert isinstance(EmailService().channel, LogEmailChannel)
    assert EmailService().send_otp_email("jane@mail.com", "123456") is True


def test_http_channel_posts_to_notification_service():
    seen = []

    def handler(request):
        seen.append(request)
        return httpx.Response(202, json={"queued": True})

    channel = HttpEmailChannel("http://notify.internal/", transport=httpx.MockTransport(handler))

    assert EmailService(channel).send_order_status_update_email(ORDER, "jane@mail.com") is True

    request = seen[0]
    assert str(request.url) == "http://notify.internal/v1/notifications/email"
    body = json.loads(request.content)
    assert body["event_type"] == "ORDER_STATUS"
    assert body["recipient"] == "jane@mail.com"
    assert "OUT FOR DELIVERY" in body["subject"]


def test_http_channel_error_status_counts_as_failure():
    transport = httpx.MockTransport(lambda request: httpx.Response(503))
    channel = HttpEmailChannel("http://notify.internal", transport=transport)

    assert EmailService(channel).send_otp_email("jane@mail.com", "123456") is False
