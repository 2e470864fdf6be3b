"""
Order tracking service

Advances active orders along the delivery timeline and emails the owner on
every change. The scan runs on an asyncio task started with the application;
the storage calls themselves are blocking, so each scan executes in a worker
thread.

The HTTP routes that change an order's status (admin override, payment
verification) go through the same ``_apply`` step, so the timer and the API
share one transition function and one conditional write.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from starlette.concurrency import run_in_threadpool

import config
from email_service import EmailService
from order_status import OrderStatus, Trigger, next_status, status_message
from storage import Storage, as_utc, utcnow

logger = logging.getLogger("foodieexpress.tracking")


class OrderNotFound(Exception):
    pass


class StatusConflict(Exception):
    """Another writer changed the order's status while this one was deciding."""


class OrderTrackingService:
    def __init__(self, storage: Storage, email_service: EmailService,
                 interval_seconds: int = config.ORDER_TRACKING_INTERVAL):
        self.storage = storage
        self.email_service = email_service
        self.interval_seconds = interval_seconds
        self._task: Optional[asyncio.Task] = None

    # ---------------- Timer ----------------

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())
        logger.info("Order tracking service started (every %ss)", self.interval_seconds)

    async def stop(self):
        if not self._task:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Order tracking service stopped")

    async def _run(self):
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await run_in_threadpool(self.process_order_updates)
            except Exception:
                logger.exception("Error processing order updates")

    # ---------------- Scan ----------------

    def process_order_updates(self, now: Optional[datetime] = None) -> int:
        """Run one scan cycle and return the number of orders that moved."""
        now = now or utcnow()
        moved = 0
        for order in self.storage.get_all_active_orders():
            try:
                created_at = as_utc(order.get("created_at")) or now
                trigger = Trigger.tick(now - created_at)
                if self._apply(order, trigger) is not None:
                    moved += 1
            except StatusConflict as e:
                logger.info("Skipping order %s: %s", order.get("id"), e)
            except Exception:
                logger.exception("Failed to advance order %s", order.get("id"))
        return moved

    # ---------------- Transitions ----------------

    def _apply(self, order: dict, trigger: Trigger,
               changes: Optional[Dict[str, Any]] = None) -> Optional[dict]:
        """Apply ``trigger`` to ``order``; returns the updated order or None if nothing changed."""
        current = order["status"]
        new = next_status(current, trigger)
        if new == current:
            return None

        changes = dict(changes or {})
        if new == OrderStatus.DELIVERED:
            changes["delivered_at"] = utcnow()
        updated = self.storage.transition_order_status(
            order["id"], current, new.value, status_message(new.value), changes
        )
        if updated is None:
            raise StatusConflict(f"Order {order['id']} is no longer '{current}'")

        logger.info("Order %s status updated %s -> %s", order["id"], current, new.value)
        try:
            self._notify_status(updated["id"], new.value)
        except Exception:
            logger.exception("Failed to notify owner of order %s", order["id"])
        return updated

    def _notify_status(self, order_id: str, status: str):
        order = self.storage.get_order(order_id)
        if not order:
            return
        user = self.storage.get_user(order["user_id"])
        if user and user.get("email"):
            if status == OrderStatus.CONFIRMED:
                self.email_service.send_order_confirmation_email(order, user["email"])
            else:
                self.email_service.send_order_status_update_email(order, user["email"], status)

    def _load(self, order_id: str) -> dict:
        order = self.storage.get_order(order_id)
        if not order:
            raise OrderNotFound(order_id)
        return order

    def update_order_status(self, order_id: str, status: str) -> dict:
        """Administrative override; raises InvalidTransition for illegal moves."""
        order = self._load(order_id)
        self._apply(order, Trigger.set(status))
        return self._load(order_id)

    def verify_payment(self, order_id: str) -> dict:
        """Mark the order paid and confirm it if it is still pending."""
        changes = {"payment_status": "paid"}
        order = self._load(order_id)
        try:
            moved = self._apply(order, Trigger.payment_verified(), changes)
        except StatusConflict:
            # Another writer moved the order after it was read.
            moved = self._apply(self._load(order_id), Trigger.payment_verified(), changes)
        if moved is None:
            self.storage.update_order(order_id, changes)
        return self._load(order_id)
