import pytest

from tests.helpers import auth, missing_id

ADMIN_GETS = ["/api/admin/analytics", "/api/admin/users", "/api/admin/orders", "/api/admin/pending-orders"]


@pytest.mark.parametrize("path", ADMIN_GETS)
def test_admin_routes_reject_customers(client, user, path):
    assert client.get(path, headers=auth(user)).status_code == 403
    assert client.get(path).status_code == 401


def test_analytics(client, place_order, user, other_user, admin):
    first = place_order(user)
    second = place_order(other_user)
    client.put(f"/api/orders/{second['id']}/status", json={"status": "cancelled"}, headers=auth(admin))

    r = client.get("/api/admin/analytics", headers=auth(admin))

    assert r.status_code == 200
    stats = r.json()
    assert stats["users"]["total"] == 3
    assert stats["users"]["verified"] == 3
    assert all("password" not in u for u in stats["users"]["recent_users"])
    assert stats["orders"]["total"] == 2
    assert stats["orders"]["active"] == 1
    assert stats["orders"]["today"] == 2
    assert stats["orders"]["status_breakdown"] == {"pending": 1, "cancelled": 1}
    assert stats["revenue"]["total"] == pytest.approx(first["total"])
    assert stats["revenue"]["average"] == pytest.approx(first["total"])


def test_admin_lists_users_without_credentials(client, user, admin):
    r = client.get("/api/admin/users", headers=auth(admin))
    assert r.status_code == 200
    emails = {u["email"] for u in r.json()}
    assert emails == {user["email"], admin["email"]}
    assert all("password" not in u and "otp_code" not in u for u in r.json())


def test_admin_lists_all_orders(client, place_order, user, other_user, admin):
    place_order(user)
    place_order(other_user)
    r = client.get("/api/admin/orders", headers=auth(admin))
    assert len(r.json()) == 2


def test_pending_orders_include_customer_email(client, place_order, user, admin):
    pending = place_order(user)
    confirmed = place_order(user)
    client.post("/api/payment/verify", json={"order_id": confirmed["id"]}, headers=auth(user))

    r = client.get("/api/admin/pending-orders", headers=auth(admin))

    assert [o["id"] for o in r.json()] == [pending["id"]]
    assert r.json()[0]["user_email"] == user["email"]
    assert len(r.json()[0]["order_items"]) == 2


def test_admin_confirms_payment(client, storage, place_order, user, admin, channel):
    order = place_order(user)

    r = client.post(f"/api/admin/orders/{order['id']}/confirm-payment", headers=auth(admin))

    assert r.status_code == 200
    assert r.json()["order"]["status"] == "confirmed"
    assert len(channel.of_type("ORDER_CONFIRMED")) == 1
    assert client.post(f"/api/admin/orders/{order['id']}/confirm-payment",
                       headers=auth(user)).status_code == 403
    assert client.post(f"/api/admin/orders/{missing_id(storage)}/confirm-payment",
                       headers=auth(admin)).status_code == 404


def test_admin_creates_catalog_entries(client, admin):
    r = client.post("/api/admin/categories", json={"name": "Thai"}, headers=auth(admin))
    assert r.status_code == 201
    category = r.json()

    r = client.post("/api/admin/restaurants", json={
        "name": "Bangkok Bites", "cuisine_type": "Thai", "address": "9 River Rd", "delivery_fee": 3.5,
    }, headers=auth(admin))
    assert r.status_code == 201
    restaurant = r.json()

    r = client.post("/api/admin/menu-items", json={
        "restaurant_id": restaurant["id"], "category_id": category["id"],
        "name": "Pad Thai", "price": 11.25,
    }, headers=auth(admin))
    assert r.status_code == 201
    assert r.json()["name"] == "Pad Thai"

    details = client.get(f"/api/restaurants/{restaurant['id']}").json()
    assert [i["name"] for i in details["food_items"]] == ["Pad Thai"]


def test_admin_menu_item_needs_existing_restaurant_and_category(client, storage, admin, menu):
    item = {"restaurant_id": missing_id(storage), "category_id": menu["category"]["id"],
            "name": "Ghost Dish", "price": 1.0}
    assert client.post("/api/admin/menu-items", json=item, headers=auth(admin)).status_code == 404

    item.update(restaurant_id=menu["restaurant"]["id"], category_id=missing_id(storage))
    assert client.post("/api/admin/menu-items", json=item, headers=auth(admin)).status_code == 404


def test_customers_cannot_create_catalog_entries(client, user):
    r = client.post("/api/admin/categories", json={"name": "Thai"}, headers=auth(user))
    assert r.status_code == 403
