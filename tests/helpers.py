from bson import ObjectId


class RecordingChannel:
    def __init__(self):
        self.messages = []

    def send(self, message):
        self.messages.append(message)

    def of_type(self, event_type):
        return [m for m in self.messages if m.event_type == event_type]


class FailingChannel:
    def send(self, message):
        raise ConnectionError("mail server unreachable")


def missing_id(storage):
    """An id that is well formed for the backend but points at nothing."""
    return "999999" if storage.backend == "sql" else str(ObjectId())


def make_user(storage, email="jane@mail.com", verified=True):
    return storage.create_user({
        "email": email,
        "first_name": "Jane",
        "last_name": "Doe",
        "phone": "555-0100",
        "password": "secret123",
        "is_verified": verified,
    })


def auth(user):
    return {"X-User-Id": user["id"]}


def order_payload(menu, lines=None):
    if lines is None:
        lines = [(menu["pizza"], 2), (menu["pasta"], 1)]
    return {
        "order": {
            "restaurant_id": menu["restaurant"]["id"],
            "delivery_address": "42 Elm Street",
            "phone": "555-0100",
        },
        "items": [{"food_item_id": item["id"], "quantity": qty} for item, qty in lines],
    }
