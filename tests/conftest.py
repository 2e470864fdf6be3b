import os

# Must be set before the application modules read their configuration.
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ORDER_TRACKING_ENABLED"] = "false"
os.environ.pop("NOTIFICATION_SERVICE_URL", None)

from uuid import uuid4

import mongomock
import pytest
from fastapi.testclient import TestClient

from admin_auth import create_admin_if_not_exists
from database import init_sql_database
from email_service import EmailService
from main import create_app
from mongo_storage import MongoStorage
from order_tracking import OrderTrackingService
from sql_storage import SqlStorage
from tests.helpers import RecordingChannel, auth, make_user, order_payload


@pytest.fixture(params=["sql", "mongo"])
def storage(request):
    if request.param == "sql":
        return SqlStorage(init_sql_database("sqlite://"))
    # mongomock clients share data, so every test gets its own database.
    return MongoStorage(mongomock.MongoClient()[f"test_{uuid4().hex}"])


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
def email_service(channel):
    return EmailService(channel)


@pytest.fixture
def tracker(storage, email_service):
    return OrderTrackingService(storage, email_service)


@pytest.fixture
def app(storage, email_service):
    return create_app(storage=storage, email_service=email_service, start_tracker=False)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def user(storage):
    return make_user(storage)


@pytest.fixture
def other_user(storage):
    return make_user(storage, email="sam@mail.com")


@pytest.fixture
def admin(storage):
    return create_admin_if_not_exists(storage)


@pytest.fixture
def menu(storage):
    category = storage.create_category({"name": "Italian", "description": "Pasta and pizza"})
    restaurant = storage.create_restaurant({
        "name": "Mama Mia", "description": "Wood-fired pizza", "cuisine_type": "Italian",
        "rating": 4.5, "delivery_fee": 2.99, "minimum_order": 10.0, "is_open": True,
        "address": "1 Main St",
    })
    other = storage.create_restaurant({
        "name": "Golden Dragon", "description": "Noodles and dumplings", "cuisine_type": "Chinese",
        "delivery_fee": 1.50, "is_open": True, "address": "2 Main St",
    })

    def item(owner, name, price, **extra):
        data = {"restaurant_id": owner["id"], "category_id": category["id"],
                "name": name, "description": f"House {name.lower()}", "price": price,
                "is_available": True}
        data.update(extra)
        return storage.create_food_item(data)

    return {
        "category": category,
        "restaurant": restaurant,
        "other_restaurant": other,
        "pizza": item(restaurant, "Margherita Pizza", 12.99, is_vegetarian=True),
        "pasta": item(restaurant, "Spaghetti Carbonara", 8.50),
        "tiramisu": item(restaurant, "Tiramisu", 6.00, is_available=False),
        "noodles": item(other, "Chow Mein", 9.00),
    }


@pytest.fixture
def place_order(client, menu):
    def place(user, lines=None):
        r = client.post("/api/orders", json=order_payload(menu, lines), headers=auth(user))
        assert r.status_code == 201, r.text
        return r.json()
    return place
