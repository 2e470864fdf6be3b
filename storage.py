"""
Persistence port

``Storage`` is the interface the API layer and the order tracking service
talk to. ``SqlStorage`` (SQLAlchemy) and ``MongoStorage`` (pymongo) implement
it; which one runs is chosen at startup from configuration.

Records cross this boundary as plain dicts with a string ``id`` and string
foreign keys so both backends look the same to callers. Lookups of missing
records return ``None``.
"""

import random
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from passlib.context import CryptContext

import config

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=config.BCRYPT_ROUNDS)

OTP_TTL = timedelta(minutes=10)

# Never returned to API callers.
PRIVATE_USER_FIELDS = ("password", "otp_code", "otp_expiry")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from a store."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def normalize_email(email: Optional[str]) -> str:
    return (email or "").strip().lower()


def public_user(user: Optional[dict]) -> Optional[dict]:
    if not user:
        return None
    return {k: v for k, v in user.items() if k not in PRIVATE_USER_FIELDS}


class Storage(ABC):
    backend = "abstract"

    # Credentials

    def hash_password(self, password: str) -> str:
        return pwd_context.hash(password)

    def verify_password(self, password: str, password_hash: str) -> bool:
        try:
            return pwd_context.verify(password, password_hash)
        except ValueError:
            return False

    def generate_otp(self) -> str:
        return str(random.randint(100000, 999999))

    def new_user_record(self, data: Dict[str, Any]) -> Dict[str, Any]:
        record = dict(data)
        record["email"] = normalize_email(data["email"])
        record["password"] = self.hash_password(data["password"])
        record.setdefault("is_verified", False)
        if record["is_verified"]:
            record["otp_code"] = None
            record["otp_expiry"] = None
        else:
            record["otp_code"] = self.generate_otp()
            record["otp_expiry"] = utcnow() + OTP_TTL
        return record

    def verify_user(self, email: str, otp_code: str) -> bool:
        user = self.get_user_by_email(email)
        if not user or not user.get("otp_code") or not user.get("otp_expiry"):
            return False
        if user["otp_code"] != otp_code or as_utc(user["otp_expiry"]) <= utcnow():
            return False
        self.update_user(user["id"], {"is_verified": True, "otp_code": None, "otp_expiry": None})
        return True

    # Users

    @abstractmethod
    def get_user(self, user_id: str) -> Optional[dict]: ...

    @abstractmethod
    def get_user_by_email(self, email: str) -> Optional[dict]:
        """Emails are stored lowercased; lookups match regardless of case."""

    @abstractmethod
    def create_user(self, data: Dict[str, Any]) -> dict:
        """Hash ``data['password']``, issue an OTP and store the user."""

    @abstractmethod
    def update_user(self, user_id: str, data: Dict[str, Any]) -> Optional[dict]: ...

    @abstractmethod
    def get_all_users(self) -> List[dict]: ...

    # Restaurants

    @abstractmethod
    def get_restaurants(self, open_only: bool = True) -> List[dict]: ...

    @abstractmethod
    def get_restaurant(self, restaurant_id: str) -> Optional[dict]:
        """Restaurant with a ``food_items`` list."""

    @abstractmethod
    def create_restaurant(self, data: Dict[str, Any]) -> dict: ...

    @abstractmethod
    def search_restaurants(self, query: str, cuisine_type: Optional[str] = None) -> List[dict]: ...

    # Categories

    @abstractmethod
    def get_categories(self) -> List[dict]: ...

    @abstractmethod
    def get_category(self, category_id: str) -> Optional[dict]: ...

    @abstractmethod
    def create_category(self, data: Dict[str, Any]) -> dict: ...

    # Food items

    @abstractmethod
    def get_food_items(self, restaurant_id: Optional[str] = None, category_id: Optional[str] = None) -> List[dict]: ...

    @abstractmethod
    def get_food_item(self, food_item_id: str) -> Optional[dict]:
        """Food item with nested ``restaurant`` and ``category`` (either may be None)."""

    @abstractmethod
    def create_food_item(self, data: Dict[str, Any]) -> dict: ...

    @abstractmethod
    def search_food_items(self, query: str) -> List[dict]: ...

    # Cart

    @abstractmethod
    def get_cart_items(self, user_id: str) -> List[dict]:
        """Cart rows with a nested ``food_item`` (None when the item no longer exists)."""

    @abstractmethod
    def add_to_cart(self, user_id: str, food_item_id: str, quantity: int,
                    special_instructions: Optional[str] = None) -> dict:
        """Insert the row or add ``quantity`` to the existing one."""

    @abstractmethod
    def update_cart_item(self, user_id: str, food_item_id: str, quantity: int) -> Optional[dict]:
        """Set the quantity; a quantity of 0 deletes the row. None if no such row."""

    @abstractmethod
    def remove_from_cart(self, user_id: str, food_item_id: str) -> bool: ...

    @abstractmethod
    def clear_cart(self, user_id: str) -> int: ...

    # Orders

    @abstractmethod
    def create_order(self, order: Dict[str, Any], items: List[Dict[str, Any]], message: str) -> dict:
        """Store an order, its items and the first tracking entry."""

    @abstractmethod
    def get_orders(self, user_id: str) -> List[dict]:
        """The user's orders, newest first, each with items, restaurant and tracking."""

    @abstractmethod
    def get_order(self, order_id: str) -> Optional[dict]: ...

    @abstractmethod
    def get_all_orders(self) -> List[dict]: ...

    @abstractmethod
    def get_all_active_orders(self) -> List[dict]: ...

    @abstractmethod
    def transition_order_status(self, order_id: str, expected_status: str, new_status: str,
                                message: str, changes: Optional[Dict[str, Any]] = None) -> Optional[dict]:
        """Move an order from ``expected_status`` to ``new_status``.

        The status write only happens if the stored status still equals
        ``expected_status``; on success one tracking entry is appended and the
        updated order is returned. Returns None when the order is missing or
        another writer changed its status first.
        """

    @abstractmethod
    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        """Update non-status order fields (e.g. payment status)."""

    @abstractmethod
    def add_order_tracking(self, order_id: str, status: str, message: str) -> dict: ...

    @abstractmethod
    def get_order_tracking(self, order_id: str) -> List[dict]: ...
