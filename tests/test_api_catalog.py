from tests.helpers import missing_id


def test_health(client, storage):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "storage": storage.backend, "order_tracking": "stopped"}


def test_list_restaurants(client, menu):
    r = client.get("/api/restaurants")
    assert r.status_code == 200
    assert [x["name"] for x in r.json()] == ["Mama Mia", "Golden Dragon"]


def test_restaurant_details_include_menu(client, menu):
    r = client.get(f"/api/restaurants/{menu['restaurant']['id']}")
    assert r.status_code == 200
    assert len(r.json()["food_items"]) == 3


def test_unknown_restaurant(client, storage):
    assert client.get(f"/api/restaurants/{missing_id(storage)}").status_code == 404
    assert client.get("/api/restaurants/garbage").status_code == 404


def test_search_restaurants(client, menu):
    r = client.get("/api/restaurants/search", params={"q": "noodles"})
    assert [x["name"] for x in r.json()] == ["Golden Dragon"]
    r = client.get("/api/restaurants/search", params={"q": "", "cuisineType": "Italian"})
    assert [x["name"] for x in r.json()] == ["Mama Mia"]


def test_categories(client, menu):
    r = client.get("/api/categories")
    assert [c["name"] for c in r.json()] == ["Italian"]


def test_food_items_filtered_by_restaurant(client, menu):
    r = client.get("/api/food-items", params={"restaurantId": menu["other_restaurant"]["id"]})
    assert [i["name"] for i in r.json()] == ["Chow Mein"]


def test_food_item_details(client, menu, storage):
    r = client.get(f"/api/food-items/{menu['pizza']['id']}")
    assert r.status_code == 200
    assert r.json()["restaurant"]["name"] == "Mama Mia"
    assert r.json()["is_vegetarian"] is True
    assert client.get(f"/api/food-items/{missing_id(storage)}").status_code == 404


def test_search_food_items(client, menu):
    r = client.get("/api/food-items/search", params={"q": "pizza"})
    assert [i["name"] for i in r.json()] == ["Margherita Pizza"]
