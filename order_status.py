"""
Order status state machine

Every writer of an order's status (the background progressor, payment
verification and the admin override route) computes the new status through
``next_status`` so all of them agree on what a legal move is.

The delivery timeline is a single absolute schedule: each threshold is the
number of minutes since the order was *created*, not since the previous stage
was entered.
"""

from dataclasses import dataclass
from datetime import timedelta
from enum import Enum
from typing import Dict, Optional, Tuple


class OrderStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    OUT_FOR_DELIVERY = "out_for_delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})

# Forward path; cancelled sits outside it.
PROGRESSION = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
)

# current status -> (minutes since creation, next status)
TIMELINE: Dict[OrderStatus, Tuple[int, OrderStatus]] = {
    OrderStatus.PENDING: (2, OrderStatus.CONFIRMED),
    OrderStatus.CONFIRMED: (5, OrderStatus.PREPARING),
    OrderStatus.PREPARING: (15, OrderStatus.OUT_FOR_DELIVERY),
    OrderStatus.OUT_FOR_DELIVERY: (25, OrderStatus.DELIVERED),
}

STATUS_MESSAGES: Dict[OrderStatus, str] = {
    OrderStatus.PENDING: "Order placed successfully, awaiting payment confirmation",
    OrderStatus.CONFIRMED: "Your order has been confirmed and is being prepared.",
    OrderStatus.PREPARING: "The restaurant is now preparing your order.",
    OrderStatus.OUT_FOR_DELIVERY: "Your order is on its way! It should arrive soon.",
    OrderStatus.DELIVERED: "Your order has been delivered. Enjoy your meal!",
    OrderStatus.CANCELLED: "Your order has been cancelled. If you have any questions, please contact us.",
}


class InvalidTransition(Exception):
    """Raised when a trigger cannot be applied to an order's current status."""

    def __init__(self, current: str, target: Optional[str], reason: str):
        self.current = current
        self.target = target
        self.reason = reason
        super().__init__(f"Cannot move order from '{current}' to '{target}': {reason}")


TICK = "tick"
PAYMENT_VERIFIED = "payment_verified"
SET = "set"


@dataclass(frozen=True)
class Trigger:
    kind: str
    elapsed: Optional[timedelta] = None
    target: Optional[str] = None

    @classmethod
    def tick(cls, elapsed: timedelta) -> "Trigger":
        return cls(TICK, elapsed=elapsed)

    @classmethod
    def payment_verified(cls) -> "Trigger":
        return cls(PAYMENT_VERIFIED)

    @classmethod
    def set(cls, target: str) -> "Trigger":
        return cls(SET, target=target)


def parse_status(value: str) -> OrderStatus:
    try:
        return OrderStatus(value)
    except ValueError:
        raise InvalidTransition(value, None, "unknown status") from None


def is_terminal(status: str) -> bool:
    return parse_status(status) in TERMINAL_STATUSES


def status_message(status: str) -> str:
    return STATUS_MESSAGES.get(parse_status(status), "Your order status has been updated.")


def next_status(current: str, trigger: Trigger) -> OrderStatus:
    """Return the status an order should hold after ``trigger``.

    Returning ``current`` unchanged means no transition is due. Raises
    ``InvalidTransition`` when the trigger is not allowed from ``current``.
    """
    state = parse_status(current)

    if trigger.kind == TICK:
        if state in TERMINAL_STATUSES or trigger.elapsed is None:
            return state
        minutes, following = TIMELINE[state]
        if trigger.elapsed >= timedelta(minutes=minutes):
            return following
        return state

    if trigger.kind == PAYMENT_VERIFIED:
        if state == OrderStatus.CANCELLED:
            raise InvalidTransition(current, OrderStatus.CONFIRMED.value, "order was cancelled")
        if state == OrderStatus.PENDING:
            return OrderStatus.CONFIRMED
        return state

    if trigger.kind == SET:
        if trigger.target is None:
            raise InvalidTransition(current, None, "no target status given")
        target = parse_status(trigger.target)
        if target == state:
            return state
        if state in TERMINAL_STATUSES:
            raise InvalidTransition(current, target.value, "order is already finished")
        if target == OrderStatus.CANCELLED:
            return target
        if PROGRESSION.index(target) < PROGRESSION.index(state):
            raise InvalidTransition(current, target.value, "status cannot move backwards")
        return target

    raise ValueError(f"Unknown trigger kind: {trigger.kind}")
