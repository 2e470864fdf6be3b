"""
Transactional email

``EmailService`` renders the customer-facing messages (OTP, payment
instructions, order confirmation, status updates) and hands them to a
channel. Sending is best effort: every ``send_*`` method returns ``True`` or
``False`` and never raises, so a mail outage cannot fail checkout or a status
change.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Protocol

import httpx

import config
from order_status import status_message

logger = logging.getLogger("foodieexpress.email")

BRAND = "FoodieExpress"


@dataclass
class EmailMessage:
    event_type: str
    recipient: str
    subject: str
    text: str
    html: str
    sender: str = config.EMAIL_FROM


class EmailChannel(Protocol):
    def send(self, message: EmailMessage) -> None: ...


class LogEmailChannel:
    """Writes messages to the log instead of delivering them."""

    def send(self, message: EmailMessage) -> None:
        logger.info("Email (%s) to %s: %s", message.event_type, message.recipient, message.subject)


class HttpEmailChannel:
    """Posts messages to the notification service."""

    def __init__(self, base_url: str, timeout: float = 5.0, transport: Optional[httpx.BaseTransport] = None):
        self.url = f"{base_url.rstrip('/')}/v1/notifications/email"
        self.timeout = timeout
        self.transport = transport

    def send(self, message: EmailMessage) -> None:
        with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
            r = client.post(self.url, json={
                "event_type": message.event_type,
                "sender": message.sender,
                "recipient": message.recipient,
                "subject": message.subject,
                "message": message.text,
                "html": message.html,
            })
            r.raise_for_status()


def default_channel() -> EmailChannel:
    if config.NOTIFICATION_SERVICE_URL:
        return HttpEmailChannel(config.NOTIFICATION_SERVICE_URL)
    return LogEmailChannel()


def format_status(status: str) -> str:
    return status.replace("_", " ").upper()


def order_label(order: dict) -> str:
    return f"#{order.get('order_number') or order.get('id')}"


def _money(value) -> str:
    return f"${float(value or 0):.2f}"


def _html_page(title: str, body: str) -> str:
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #333;\">"
        f"<div style=\"background: #FF6B35; color: white; padding: 20px; text-align: center;\">"
        f"<h1>{BRAND}</h1><h2>{title}</h2></div>"
        f"<div style=\"padding: 20px;\">{body}</div>"
        f"<p style=\"text-align: center; color: #666;\">Thank you for choosing {BRAND}!</p>"
        "</body></html>"
    )


def _item_lines(order: dict) -> List[str]:
    lines = []
    for item in order.get("order_items") or []:
        food = item.get("food_item") or {}
        name = food.get("name") or "Unknown item"
        lines.append(f"{item.get('quantity')} x {name} - {_money(item.get('total_price'))}")
    return lines


def _totals(order: dict) -> List[str]:
    return [
        f"Subtotal: {_money(order.get('subtotal'))}",
        f"Delivery Fee: {_money(order.get('delivery_fee'))}",
        f"Tax: {_money(order.get('tax'))}",
        f"Total: {_money(order.get('total'))}",
    ]


def _restaurant_name(order: dict) -> str:
    return (order.get("restaurant") or {}).get("name") or "the restaurant"


class EmailService:
    def __init__(self, channel: Optional[EmailChannel] = None):
        self.channel = channel or default_channel()

    def _deliver(self, message: EmailMessage) -> bool:
        if not message.recipient:
            return False
        try:
            self.channel.send(message)
            return True
        except Exception as e:
            logger.warning("Failed to send %s email to %s: %s", message.event_type, message.recipient, e)
            return False

    def send_otp_email(self, email: str, otp: str, first_name: Optional[str] = None) -> bool:
        greeting = f"Hi {first_name}," if first_name else "Hi there,"
        text = "\n".join([
            greeting,
            f"Your {BRAND} verification code is {otp}.",
            "It expires in 10 minutes.",
        ])
        html = _html_page("Verify your email", f"<p>{greeting}</p>"
                          f"<p>Your verification code is</p><h2>{otp}</h2><p>It expires in 10 minutes.</p>")
        return self._deliver(EmailMessage("OTP", email, f"{BRAND} verification code", text, html))

    def send_payment_verification_email(self, order: dict, email: str) -> bool:
        label = order_label(order)
        text = "\n".join(
            [f"Thanks for ordering from {_restaurant_name(order)}!",
             f"Order {label} is waiting for payment confirmation."]
            + _item_lines(order)
            + _totals(order)
            + ["We will let you know as soon as the payment is verified."]
        )
        html = _html_page("Payment verification", "<br>".join(text.splitlines()))
        return self._deliver(EmailMessage(
            "PAYMENT_VERIFICATION", email, f"Complete your payment - Order {label}", text, html,
        ))

    def send_order_confirmation_email(self, order: dict, email: str) -> bool:
        label = order_label(order)
        text = "\n".join(
            [f"Thank you for your order! {_restaurant_name(order)} has received order {label}.",
             f"Status: {format_status(order.get('status', ''))}",
             f"Delivery address: {order.get('delivery_address', '')}"]
            + _item_lines(order)
            + _totals(order)
        )
        html = _html_page("Order Confirmation", "<br>".join(text.splitlines()))
        return self._deliver(EmailMessage(
            "ORDER_CONFIRMED", email, f"Order Confirmation - {label}", text, html,
        ))

    def send_order_status_update_email(self, order: dict, email: str, status: Optional[str] = None) -> bool:
        status = status or order.get("status", "")
        label = order_label(order)
        text = "\n".join([
            f"Order {label}: {format_status(status)}",
            status_message(status),
            f"Restaurant: {_restaurant_name(order)}",
        ])
        html = _html_page("Order Status Update", "<br>".join(text.splitlines()))
        return self._deliver(EmailMessage(
            "ORDER_STATUS", email, f"Order Update - {label} - {format_status(status)}", text, html,
        ))
