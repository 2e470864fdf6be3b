from main import UNKNOWN_ITEM
from tests.helpers import auth, missing_id


def add(client, user, item, quantity=1, **extra):
    return client.post("/api/cart", json={"food_item_id": item["id"], "quantity": quantity, **extra},
                       headers=auth(user))


def test_adding_an_item_twice_keeps_one_row(client, user, menu):
    assert add(client, user, menu["pizza"], 1).status_code == 201
    r = add(client, user, menu["pizza"], 2)
    assert r.status_code == 201
    assert r.json()["quantity"] == 3

    cart = client.get("/api/cart", headers=auth(user)).json()
    assert len(cart) == 1
    row = cart[0]
    assert row["quantity"] == 3
    assert row["display_name"] == "Margherita Pizza"
    assert row["line_total"] == 38.97


def test_cart_rejects_unknown_and_unavailable_items(client, storage, user, menu):
    r = client.post("/api/cart", json={"food_item_id": missing_id(storage), "quantity": 1}, headers=auth(user))
    assert r.status_code == 404
    assert add(client, user, menu["tiramisu"]).status_code == 400
    assert add(client, user, menu["pizza"], 0).status_code == 422


def test_update_quantity(client, user, menu):
    add(client, user, menu["pasta"], 1)

    r = client.put(f"/api/cart/{menu['pasta']['id']}", json={"quantity": 4}, headers=auth(user))

    assert r.status_code == 200
    assert r.json()["quantity"] == 4
    assert client.get("/api/cart", headers=auth(user)).json()[0]["quantity"] == 4


def test_update_quantity_to_zero_removes_item(client, user, menu):
    add(client, user, menu["pasta"], 1)

    r = client.put(f"/api/cart/{menu['pasta']['id']}", json={"quantity": 0}, headers=auth(user))

    assert r.status_code == 200
    assert client.get("/api/cart", headers=auth(user)).json() == []


def test_update_missing_row(client, user, menu):
    r = client.put(f"/api/cart/{menu['pasta']['id']}", json={"quantity": 2}, headers=auth(user))
    assert r.status_code == 404


def test_remove_item(client, user, menu):
    add(client, user, menu["pasta"])
    add(client, user, menu["pizza"])

    assert client.delete(f"/api/cart/{menu['pasta']['id']}", headers=auth(user)).status_code == 200
    assert client.delete(f"/api/cart/{menu['pasta']['id']}", headers=auth(user)).status_code == 404
    assert [row["display_name"] for row in client.get("/api/cart", headers=auth(user)).json()] == [
        "Margherita Pizza",
    ]


def test_clear_cart(client, user, other_user, menu):
    add(client, user, menu["pasta"])
    add(client, user, menu["pizza"])
    add(client, other_user, menu["pizza"])

    r = client.delete("/api/cart", headers=auth(user))

    assert r.json()["removed"] == 2
    assert client.get("/api/cart", headers=auth(user)).json() == []
    assert len(client.get("/api/cart", headers=auth(other_user)).json()) == 1


def test_row_for_deleted_food_item_renders_placeholder(client, storage, user):
    storage.add_to_cart(user["id"], missing_id(storage), 2)

    r = client.get("/api/cart", headers=auth(user))

    assert r.status_code == 200
    row = r.json()[0]
    assert row["food_item"] is None
    assert row["display_name"] == UNKNOWN_ITEM
    assert row["line_total"] == 0
