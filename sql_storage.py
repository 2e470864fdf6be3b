"""
Relational storage backed by SQLAlchemy.

Each public method opens its own session; multi-row writes (order creation,
status transitions) commit once so they land together or not at all.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from models import CartItem, Category, FoodItem, Order, OrderItem, OrderTracking, Restaurant, User
from order_status import TERMINAL_STATUSES
from storage import Storage, as_utc, normalize_email, utcnow

logger = logging.getLogger("foodieexpress.storage")


def _pk(value: Any) -> Optional[int]:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def row_to_dict(row) -> Optional[dict]:
    if row is None:
        return None
    d = {}
    for column in row.__table__.columns:
        value = getattr(row, column.name)
        if column.name == "id" or column.name.endswith("_id"):
            value = str(value) if value is not None else None
        elif isinstance(value, datetime):
            value = as_utc(value)
        d[column.name] = value
    return d


def _apply(row, data: Dict[str, Any]) -> None:
    for key, value in data.items():
        if key in ("id", "created_at"):
            continue
        if key.endswith("_id") and value is not None:
            value = _pk(value)
        if hasattr(row, key):
            setattr(row, key, value)


class SqlStorage(Storage):
    backend = "sql"

    def __init__(self, session_factory: sessionmaker):
        self.SessionLocal = session_factory

    def _session(self) -> Session:
        return self.SessionLocal()

    # ---------------- Users ----------------

    def get_user(self, user_id: str) -> Optional[dict]:
        pk = _pk(user_id)
        if pk is None:
            return None
        with self._session() as s:
            return row_to_dict(s.get(User, pk))

    def get_user_by_email(self, email: str) -> Optional[dict]:
        with self._session() as s:
            return row_to_dict(s.query(User).filter(User.email == normalize_email(email)).first())

    def create_user(self, data: Dict[str, Any]) -> dict:
        user = User()
        _apply(user, self.new_user_record(data))
        with self._session() as s:
            s.add(user)
            s.commit()
            return row_to_dict(user)

    def update_user(self, user_id: str, data: Dict[str, Any]) -> Optional[dict]:
        pk = _pk(user_id)
        with self._session() as s:
            user = s.get(User, pk) if pk is not None else None
            if not user:
                return None
            _apply(user, data)
            s.commit()
            return row_to_dict(user)

    def get_all_users(self) -> List[dict]:
        with self._session() as s:
            users = s.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
            return [row_to_dict(u) for u in users]

    # ---------------- Restaurants ----------------

    def get_restaurants(self, open_only: bool = True) -> List[dict]:
        with self._session() as s:
            q = s.query(Restaurant)
            if open_only:
                q = q.filter(Restaurant.is_open.is_(True))
            return [row_to_dict(r) for r in q.order_by(Restaurant.id).all()]

    def get_restaurant(self, restaurant_id: str) -> Optional[dict]:
        pk = _pk(restaurant_id)
        if pk is None:
            return None
        with self._session() as s:
            restaurant = s.get(Restaurant, pk)
            if not restaurant:
                return None
            d = row_to_dict(restaurant)
            items = s.query(FoodItem).filter(FoodItem.restaurant_id == pk).order_by(FoodItem.id).all()
            d["food_items"] = [row_to_dict(i) for i in items]
            return d

    def create_restaurant(self, data: Dict[str, Any]) -> dict:
        restaurant = Restaurant()
        _apply(restaurant, data)
        with self._session() as s:
            s.add(restaurant)
            s.commit()
            return row_to_dict(restaurant)

    def search_restaurants(self, query: str, cuisine_type: Optional[str] = None) -> List[dict]:
        like = f"%{query}%"
        with self._session() as s:
            q = s.query(Restaurant).filter(or_(
                Restaurant.name.ilike(like),
                Restaurant.description.ilike(like),
                Restaurant.cuisine_type.ilike(like),
            ))
            if cuisine_type:
                q = q.filter(Restaurant.cuisine_type == cuisine_type)
            return [row_to_dict(r) for r in q.order_by(Restaurant.id).all()]

    # ---------------- Categories ----------------

    def get_categories(self) -> List[dict]:
        with self._session() as s:
            return [row_to_dict(c) for c in s.query(Category).order_by(Category.name).all()]

    def get_category(self, category_id: str) -> Optional[dict]:
        pk = _pk(category_id)
        if pk is None:
            return None
        with self._session() as s:
            return row_to_dict(s.get(Category, pk))

    def create_category(self, data: Dict[str, Any]) -> dict:
        category = Category()
        _apply(category, data)
        with self._session() as s:
            s.add(category)
            s.commit()
            return row_to_dict(category)

    # ---------------- Food items ----------------

    def get_food_items(self, restaurant_id: Optional[str] = None, category_id: Optional[str] = None) -> List[dict]:
        with self._session() as s:
            q = s.query(FoodItem).filter(FoodItem.is_available.is_(True))
            if restaurant_id:
                q = q.filter(FoodItem.restaurant_id == _pk(restaurant_id))
            if category_id:
                q = q.filter(FoodItem.category_id == _pk(category_id))
            return [row_to_dict(i) for i in q.order_by(FoodItem.id).all()]

    def _food_item_with_details(self, s: Session, item: Optional[FoodItem]) -> Optional[dict]:
        if item is None:
            return None
        d = row_to_dict(item)
        d["restaurant"] = row_to_dict(item.restaurant)
        d["category"] = row_to_dict(item.category)
        return d

    def get_food_item(self, food_item_id: str) -> Optional[dict]:
        pk = _pk(food_item_id)
        if pk is None:
            return None
        with self._session() as s:
            return self._food_item_with_details(s, s.get(FoodItem, pk))

    def create_food_item(self, data: Dict[str, Any]) -> dict:
        item = FoodItem()
        _apply(item, data)
        with self._session() as s:
            s.add(item)
            s.commit()
            return row_to_dict(item)

    def search_food_items(self, query: str) -> List[dict]:
        like = f"%{query}%"
        with self._session() as s:
            items = (
                s.query(FoodItem)
                .filter(or_(FoodItem.name.ilike(like), FoodItem.description.ilike(like)))
                .order_by(FoodItem.id)
                .all()
            )
            return [self._food_item_with_details(s, i) for i in items]

    # ---------------- Cart ----------------

    def get_cart_items(self, user_id: str) -> List[dict]:
        with self._session() as s:
            rows = s.query(CartItem).filter(CartItem.user_id == _pk(user_id)).order_by(CartItem.id).all()
            results = []
            for row in rows:
                d = row_to_dict(row)
                d["food_item"] = self._food_item_with_details(s, s.get(FoodItem, row.food_item_id))
                results.append(d)
            return results

    def add_to_cart(self, user_id: str, food_item_id: str, quantity: int,
                    special_instructions: Optional[str] = None) -> dict:
        uid, fid = _pk(user_id), _pk(food_item_id)
        with self._session() as s:
            existing = s.query(CartItem).filter_by(user_id=uid, food_item_id=fid).first()
            if existing is None:
                s.add(CartItem(user_id=uid, food_item_id=fid, quantity=quantity,
                               special_instructions=special_instructions))
                try:
                    s.commit()
                except IntegrityError:
                    s.rollback()
                    logger.debug("Cart row for user %s item %s already exists, incrementing", uid, fid)
                else:
                    return row_to_dict(s.query(CartItem).filter_by(user_id=uid, food_item_id=fid).one())
            s.execute(
                update(CartItem)
                .where(CartItem.user_id == uid, CartItem.food_item_id == fid)
                .values(quantity=CartItem.quantity + quantity, updated_at=utcnow())
            )
            s.commit()
            return row_to_dict(s.query(CartItem).filter_by(user_id=uid, food_item_id=fid).one())

    def update_cart_item(self, user_id: str, food_item_id: str, quantity: int) -> Optional[dict]:
        with self._session() as s:
            row = s.query(CartItem).filter_by(user_id=_pk(user_id), food_item_id=_pk(food_item_id)).first()
            if row is None:
                return None
            if quantity <= 0:
                d = row_to_dict(row)
                s.delete(row)
                s.commit()
                d["quantity"] = 0
                return d
            row.quantity = quantity
            s.commit()
            return row_to_dict(row)

    def remove_from_cart(self, user_id: str, food_item_id: str) -> bool:
        with self._session() as s:
            deleted = (
                s.query(CartItem)
                .filter_by(user_id=_pk(user_id), food_item_id=_pk(food_item_id))
                .delete()
            )
            s.commit()
            return deleted > 0

    def clear_cart(self, user_id: str) -> int:
        with self._session() as s:
            deleted = s.query(CartItem).filter_by(user_id=_pk(user_id)).delete()
            s.commit()
            return deleted

    # ---------------- Orders ----------------

    def create_order(self, order: Dict[str, Any], items: List[Dict[str, Any]], message: str) -> dict:
        with self._session() as s:
            row = Order()
            _apply(row, order)
            for item in items:
                line = OrderItem()
                _apply(line, item)
                row.items.append(line)
            row.tracking.append(OrderTracking(status=row.status, message=message, timestamp=utcnow()))
            s.add(row)
            s.commit()
            return self._order_with_details(s, row)

    def _order_with_details(self, s: Session, order: Order) -> dict:
        d = row_to_dict(order)
        items = []
        for line in order.items:
            item = row_to_dict(line)
            item["food_item"] = row_to_dict(s.get(FoodItem, line.food_item_id))
            items.append(item)
        d["order_items"] = items
        d["restaurant"] = row_to_dict(order.restaurant)
        tracking = (
            s.query(OrderTracking)
            .filter(OrderTracking.order_id == order.id)
            .order_by(OrderTracking.timestamp, OrderTracking.id)
            .all()
        )
        d["tracking"] = [row_to_dict(t) for t in tracking]
        return d

    def get_orders(self, user_id: str) -> List[dict]:
        with self._session() as s:
            orders = (
                s.query(Order)
                .filter(Order.user_id == _pk(user_id))
                .order_by(Order.created_at.desc(), Order.id.desc())
                .all()
            )
            return [self._order_with_details(s, o) for o in orders]

    def get_order(self, order_id: str) -> Optional[dict]:
        pk = _pk(order_id)
        if pk is None:
            return None
        with self._session() as s:
            order = s.get(Order, pk)
            return self._order_with_details(s, order) if order else None

    def get_all_orders(self) -> List[dict]:
        with self._session() as s:
            orders = s.query(Order).order_by(Order.created_at.desc(), Order.id.desc()).all()
            return [row_to_dict(o) for o in orders]

    def get_all_active_orders(self) -> List[dict]:
        terminal = [status.value for status in TERMINAL_STATUSES]
        with self._session() as s:
            orders = (
                s.query(Order)
                .filter(Order.status.notin_(terminal))
                .order_by(Order.created_at, Order.id)
                .all()
            )
            return [row_to_dict(o) for o in orders]

    def transition_order_status(self, order_id: str, expected_status: str, new_status: str,
                                message: str, changes: Optional[Dict[str, Any]] = None) -> Optional[dict]:
        pk = _pk(order_id)
        if pk is None:
            return None
        values = dict(changes or {})
        values.update(status=new_status, updated_at=utcnow())
        with self._session() as s:
            result = s.execute(
                update(Order)
                .where(Order.id == pk, Order.status == expected_status)
                .values(**values)
            )
            if result.rowcount != 1:
                s.rollback()
                logger.debug("Order %s is no longer %s", order_id, expected_status)
                return None
            s.add(OrderTracking(order_id=pk, status=new_status, message=message, timestamp=utcnow()))
            s.commit()
            return row_to_dict(s.get(Order, pk))

    def update_order(self, order_id: str, changes: Dict[str, Any]) -> Optional[dict]:
        pk = _pk(order_id)
        with self._session() as s:
            order = s.get(Order, pk) if pk is not None else None
            if not order:
                return None
            _apply(order, {k: v for k, v in changes.items() if k != "status"})
            s.commit()
            return row_to_dict(order)

    def add_order_tracking(self, order_id: str, status: str, message: str) -> dict:
        with self._session() as s:
            entry = OrderTracking(order_id=_pk(order_id), status=status, message=message, timestamp=utcnow())
            s.add(entry)
            s.commit()
            return row_to_dict(entry)

    def get_order_tracking(self, order_id: str) -> List[dict]:
        with self._session() as s:
            entries = (
                s.query(OrderTracking)
                .filter(OrderTracking.order_id == _pk(order_id))
                .order_by(OrderTracking.timestamp, OrderTracking.id)
                .all()
            )
            return [row_to_dict(e) for e in entries]
