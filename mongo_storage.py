"""
Document storage backed by MongoDB.

Each entity lives in a collection named after it in lowercase (User ->
"user", OrderTracking -> "ordertracking"). References between documents are
stored as string ids and joined in application code.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, ReturnDocument

from order_status import TERMINAL_STATUSES
from storage import Storage, as_utc, normalize_email, utcnow

logger = logging.getLogger("foodieexpress.storage")

USERS = "user"
RESTAURANTS = "restaurant"
CATEGORIES = "category"
FOOD_ITEMS = "fooditem"
CART_ITEMS = "cartitem"
ORDERS = "order"
ORDER_ITEMS = "orderitem"
ORDER_TRACKING = "ordertracking"


def to_object_id(value: Any) -> Optional[ObjectId]:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        return None


def serialize_doc(doc: Optional[dict]) -> Optional[dict]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))  # convert ObjectId to string
    for key, value in d.items():
        if isinstance(value, datetime):
            d[key] = as_utc(value)
    return d


def _to_dict(data: Union[BaseModel, dict]) -> dict:
    if isinstance(data, BaseModel):
        return data.model_dump()
    d = dict(data)
    d.pop("id", None)
    return d


class MongoStorage(Storage):
    backend = "mongo"

    def __init__(self, db):
        self.db = db
        self._ensure_indexes()

    def _ensure_indexes(self):
        self.db[USERS].create_index("email", unique=True)
        self.db[CART_ITEMS].create_index([("user_id", ASCENDING), ("food_item_id", ASCENDING)], unique=True)
        self.db[ORDERS].create_index("order_number", unique=True)
        self.db[ORDERS].create_index("status")
        self.db[ORDER_ITEMS].create_index("order_id")
        self.db[ORDER_TRACKING].create_index([("order_id", ASCENDING), ("timestamp", ASCENDING)])

    # CRUD helpers

    def create_document(self, collection_name: str, data: Union[BaseModel, dict], timestamps: bool = True) -> dict:
        payload = _to_dict(data)
        if timestamps:
            now = utcnow()
            payload["created_at"] = now
            payload["updated_at"] = now
        result = self.db[collection_name].insert_one(payload)
        payload["_id"] = result.inserted_id
        return serialize_doc(payload)

    def get_documents(self, collection_name: str, filter_dict: Optional[dict] = None,
                      limit: Optional[int] = None, sort: Optional[list] = None) -> List[dict]:
        cursor = self.db[collection_name].find(filter_dict or {})
        if sort:
            cursor = cursor.sort(sort)
        if limit:
            cursor = cursor.limit(int(limit))
        return [serialize_doc(doc) for doc in cursor]

    def get_document_by_id(self, collection_name: str, _id: Any) -> Optional[dict]:
        oid = to_object_id(_id)
        if oid is None:
            return None
        return serialize_doc(self.db[collection_name].find_one({"_id": oid}))

    def update_document(self, collection_name: str, _id: Any, update_data: Dict[str, Any]) -> Optional[dict]:
        oid = to_object_id(_id)
        if oid is None:
            return None
        changes = _to_dict(update_data)
        changes["updated_at"] = utcnow()
        doc = self.db[collection_name].find_one_and_update(
            {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        return serialize_doc(doc)

    # ---------------- Users ----------------

    def get_user(self, user_id: str) -> Optional[dict]:
        return self.get_document_by_id(USERS, user_id)

    def get_user_by_email(self, email: str) -> Optional[dict]:
        users = self.get_documents(USERS, {"email": normalize_email(email)}, limit=1)
        return users[0] if users else None

    def create_user(self, data: Dict[str, Any]) -> dict:
        return self.create_document(USERS, self.new_user_record(data))

    def update_user(self, user_id: str, data: Dict[str, Any]) -> Optional[dict]:
        return self.update_document(USERS, user_id, data)

    def get_all_users(self) -> List[dict]:
        return self.get_documents(USERS, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])

    # ---------------- Restaurants ----------------

    def get_restaurants(self, open_only: bool = True) -> List[dict]:
        filt = {"is_open": True} if open_only else {}
        return self.get_documents(RESTAURANTS, filt, sort=[("_id", ASCENDING)])

    def get_restaurant(self, restaurant_id: str) -> Optional[dict]:
        restaurant = self.get_document_by_id(RESTAURANTS, restaurant_id)
        if not restaurant:
            return None
        restaurant["food_items"] = self.get_documents(
            FOOD_ITEMS, {"restaurant_id": restaurant["id"]}, sort=[("_id", ASCENDING)]
        )
        return restaurant

    def create_restaurant(self, data: Dict[str, Any]) -> dict:
        return self.create_document(RESTAURANTS, data)

    def search_restaurants(self, query: str, cuisine_type: Optional[str] = None) -> List[dict]:
        filt: Dict[str, Any] = {
            "$or": [
                {"name": {"$regex": query, "$options": "i"}},
                {"description": {"$regex": query, "$options": "i"}},
                {"cuisine_type": {"$regex": query, "$options": "i"}},
            ]
        }
        if cuisine_type:
            filt["cuisine_type"] = cuisine_type
        return self.get_documents(RESTAURANTS, filt, sort=[("_id", ASCENDING)])

    # ---------------- Categories ----------------

    def get_categories(self) -> List[dict]:
        return self.get_documents(CATEGORIES, sort=[("name", ASCENDING)])

    def get_category(self, category_id: str) -> Optional[dict]:
        return self.get_document_by_id(CATEGORIES, category_id)

    def create_category(self, data: Dict[str, Any]) -> dict:
        return self.create_document(CATEGORIES, data)

    # ---------------- Food items ----------------

    def get_food_items(self, restaurant_id: Optional[str] = None, category_id: Optional[str] = None) -> List[dict]:
        filt: Dict[str, Any] = {"is_available": True}
        if restaurant_id:
            filt["restaurant_id"] = str(restaurant_id)
        if category_id:
            filt["category_id"] = str(category_id)
        return self.get_documents(FOOD_ITEMS, filt, sort=[("_id", ASCENDING)])

    def _with_details(self, item: Optional[dict]) -> Optional[dict]:
        if not item:
            return None
        item["restaurant"] = self.get_document_by_id(RESTAURANTS, item.get("restaurant_id"))
        item["category"] = self.get_document_by_id(CATEGORIES, item.get("category_id"))
        return item

    def get_food_item(self, food_item_id: str) -> Optional[dict]:
        return self._with_details(self.get_document_by_id(FOOD_ITEMS, food_item_id))

    def create_food_item(self, data: Dict[str, Any]) -> dict:
        payload = dict(data)
        for key in ("restaurant_id", "category_id"):
            if payload.get(key) is not None:
                payload[key] = str(payload[key])
        return self.create_document(FOOD_ITEMS, payload)

    def search_food_items(self, query: str) -> List[dict]:
        items = self.get_documents(FOOD_ITEMS, {
            "$or": [
                {"name": {"$regex": query, "$options": "i"}},
                {"description": {"$regex": query, "$options": "i"}},
            ]
        }, sort=[("_id", ASCENDING)])
        return [self._with_details(item) for item in items]

    # ---------------- Cart ----------------

    def get_cart_items(self, user_id: str) -> List[dict]:
        rows = self.get_documents(CART_ITEMS, {"user_id": str(user_id)}, sort=[("_id", ASCENDING)])
        for row in rows:
            row["food_item"] = self.get_food_item(row["food_item_id"])
        return rows

    def add_to_cart(self, user_id: str, food_item_id: str, quantity: int,
                    special_instructions: Optional[str] = None) -> dict:
        now = utcnow()
        on_insert: Dict[str, Any] = {"created_at": now}
        if special_instructions is not None:
            on_insert["special_instructions"] = special_instructions
        doc = self.db[CART_ITEMS].find_one_and_update(
            {"user_id": str(user_id), "food_item_id": str(food_item_id)},
            {
                "$inc": {"quantity": quantity},
                "$set": {"updated_at": now},
                "$setOnInsert": on_insert,
            },
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc)

    def update_cart_item(self, user_id: str, food_item_id: str, quantity: int) -> Optional[dict]:
        filt = {"user_id": str(user_id), "food_item_id": str(food_item_id)}
        if quantity <= 0:
            doc = serialize_doc(self.db[CART_ITEMS].find_one_and_delete(filt))
            if doc:
                doc["quantity"] = 0
            return doc
        doc = self.db[CART_ITEMS].find_one_and_update(
            filt,
            {"$set": {"quantity": quantity, "updated_at": utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        return serialize_doc(doc)

    def remove_from_cart(self, user_id: str, food_item_id: str) -> bool:
        result = self.db[CART_ITEMS].delete_one({"user_id": str(user_id), "food_item_id": str(food_item_id)})
        return result.deleted_count > 0

    def clear_cart(self, user_id: str) -> int:
        return self.db[CART_ITEMS].delete_many({"user_id": str(user_id)}).deleted_count

    # ---------------- Orders ----------------

    def create_order(self, order: Dict[str, Any], items: List[Dict[str, Any]], message: str) -> dict:
        payload = dict(order)
        for key in ("user_id", "restaurant_id"):
            payload[key] = str(payload[key])
        created = self.create_document(ORDERS, payload)
        lines = []
        for item in items:
            line = dict(item)
            line.pop("id", None)
            line["order_id"] = created["id"]
            line["food_item_id"] = str(line["food_item_id"])
            lines.append(line)
        try:
            if lines:
                self.db[ORDER_ITEMS].insert_many(lines)
            self.add_order_tracking(created["id"], created["status"], message)
        except Exception:
            # No multi-document transaction: undo the order so it never exists without its items.
            logger.error("Failed to store items for order %s, removing it", created["id"])
            self.db[ORDER_ITEMS].delete_many({"order_id": created["id"]})
            self.db[ORDERS].delete_one({"_id": ObjectId(created["id"])})
            raise
        return self._order_with_details(created)

    def _order_with_details(self, order: dict) -> dict:
        items = self.get_documents(ORDER_ITEMS, {"order_id": order["id"]}, sort=[("_id", ASCENDING)])
        for item in items:
            item["food_item"] = self.get_document_by_id(FOOD_ITEMS, item["food_item_id"])
        order["order_items"] = items
        order["restaurant"] = self.get_document_by_id(RESTAURANTS, order.get("restaurant_id"))
        order["tracking"] = self.get_order_tracking(order["id"])
        return order

    def get_orders(self, user_id: str) -> List[dict]:
        orders = self.get_documents(ORDERS, {"user_id": str(user_id)},
                                    sort=[("created_at", DESCENDING), ("_id", DESCENDING)])
        return [self._order_with_details(o) for o in orders]

    def get_order(self, order_id: str) -> Optional[dict]:
        order = self.get_document_by_id(ORDERS, order_id)
        return self._order_with_details(order) if order else None

    def get_all_orders(self) -> List[dict]:
        return self.get_documents(ORDERS, sort=[("created_at", DESCENDING), ("_id", DESCENDING)])

    def get_all_active_orders(self) -> List[dict]:
        terminal = [status.value for status in TERMINAL_STATUSES]
        return self.get_documents(ORDERS, {"status": {"$nin": terminal}},
                                  sort=[("created_at", ASCENDING), ("_id", ASCENDING)])

    def transition_order_status(self, order_id: str, expected_status: str, new_status: str,
                                message: str, changes: Optional[Dict[str, Any]] = None) -> Optional[dict]:
        oid = to_object_id(order_id)
        if oid is None:
            return None
        values = dict(changes or {})
        values.update(status=new_status, updated_at=utcnow())
        doc = self.db[ORDERS].find_one_and_update(
            {"_id": oid, "status": expected_status},
            {"$set": values},
            return_document=ReturnDocument.AFTER,
        )
        if doc is None:
            logger.debug("Order %s is no longer %s", order_id, expected_status)
            return None
        self.add_order_tracking(str(oid), new_status, message)
        return serialize_doc(doc)

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        return self.update_document(ORDERS, order_id, {k: v for k, v in changes.items() if k != "status"})

    def add_order_tracking(self, order_id: str, status: str, message: str) -> dict:
        return self.create_document(ORDER_TRACKING, {
            "order_id": str(order_id),
            "status": status,
            "message": message,
            "timestamp": utcnow(),
        }, timestamps=False)

    def get_order_tracking(self, order_id: str) -> List[dict]:
        return self.get_documents(ORDER_TRACKING, {"order_id": str(order_id)},
                                  sort=[("timestamp", ASCENDING), ("_id", ASCENDING)])
