"""
Sample data

Categories, restaurants and menu items used for local development and demos.
Seeding is skipped when the store already has restaurants.
"""

import logging

from schemas import Category, FoodItem, Restaurant
from storage import Storage

logger = logging.getLogger("foodieexpress.seed")

CATEGORIES = [
    {"name": "Italian", "description": "Authentic Italian cuisine with pasta, pizza, and more",
     "image_url": "https://images.unsplash.com/photo-1551183053-bf91a1d81141?w=400"},
    {"name": "Indian", "description": "Traditional Indian dishes with rich spices and flavors",
     "image_url": "https://images.unsplash.com/photo-1565557623262-b51c2513a641?w=400"},
    {"name": "Chinese", "description": "Delicious Chinese cuisine with stir-fries and noodles",
     "image_url": "https://images.unsplash.com/photo-1526318896980-cf78c088247c?w=400"},
    {"name": "American", "description": "Classic American comfort food and burgers",
     "image_url": "https://images.unsplash.com/photo-1571091718767-18b5b1457add?w=400"},
]

# Keyed by the category each restaurant's menu belongs to.
RESTAURANTS = [
    ("Italian", {
        "name": "Mama Mia Italian Kitchen",
        "description": "Authentic Italian cuisine with fresh pasta and wood-fired pizzas",
        "cuisine_type": "Italian",
        "image_url": "https://images.unsplash.com/photo-1551183053-bf91a1d81141?w=600",
        "rating": 4.5, "delivery_time": "25-35 min", "minimum_order": 15.00, "delivery_fee": 2.99,
        "is_open": True, "address": "123 Little Italy St, Downtown", "phone": "+1-555-PIZZA",
    }),
    ("Indian", {
        "name": "Spice Palace",
        "description": "Traditional Indian restaurant with aromatic curries and tandoor specialties",
        "cuisine_type": "Indian",
        "image_url": "https://images.unsplash.com/photo-1565557623262-b51c2513a641?w=600",
        "rating": 4.3, "delivery_time": "30-40 min", "minimum_order": 12.00, "delivery_fee": 3.99,
        "is_open": True, "address": "456 Curry Lane, Midtown", "phone": "+1-555-SPICE",
    }),
    ("Chinese", {
        "name": "Golden Dragon",
        "description": "Authentic Chinese cuisine with fresh ingredients and traditional recipes",
        "cuisine_type": "Chinese",
        "image_url": "https://images.unsplash.com/photo-1526318896980-cf78c088247c?w=600",
        "rating": 4.4, "delivery_time": "20-30 min", "minimum_order": 10.00, "delivery_fee": 2.49,
        "is_open": True, "address": "789 Dragon Ave, Chinatown", "phone": "+1-555-DRAGON",
    }),
    ("American", {
        "name": "Burger Junction",
        "description": "Classic American burgers with hand-cut fries and milkshakes",
        "cuisine_type": "American",
        "image_url": "https://images.unsplash.com/photo-1571091718767-18b5b1457add?w=600",
        "rating": 4.0, "delivery_time": "15-25 min", "minimum_order": 6.00, "delivery_fee": 1.49,
        "is_open": True, "address": "654 Main Street, Uptown", "phone": "+1-555-BURGER",
    }),
]

MENU = {
    "Mama Mia Italian Kitchen": [
        ("Margherita Pizza", "Classic pizza with fresh tomatoes, mozzarella, and basil", 18.99, {"is_vegetarian": True}),
        ("Spaghetti Carbonara", "Creamy pasta with pancetta, eggs, and parmesan cheese", 16.99, {}),
        ("Pepperoni Pizza", "Classic pizza topped with spicy pepperoni and cheese", 19.99, {}),
        ("Tiramisu", "Classic Italian dessert with coffee-soaked ladyfingers", 8.99, {"is_vegetarian": True}),
    ],
    "Spice Palace": [
        ("Chicken Tikka Masala", "Tender chicken in rich tomato-based curry sauce", 17.99, {"spice_level": "medium"}),
        ("Butter Chicken", "Creamy chicken curry with aromatic spices", 18.99, {"spice_level": "mild"}),
        ("Biryani", "Fragrant basmati rice with spiced chicken and herbs", 19.99, {"spice_level": "medium"}),
        ("Naan Bread", "Fresh baked Indian bread, perfect for dipping", 4.99, {"is_vegetarian": True}),
    ],
    "Golden Dragon": [
        ("Kung Pao Chicken", "Spicy stir-fried chicken with peanuts and vegetables", 15.99, {"spice_level": "hot"}),
        ("Vegetable Lo Mein", "Soft noodles tossed with seasonal vegetables", 12.99,
         {"is_vegetarian": True, "is_vegan": True}),
        ("Sweet and Sour Pork", "Crispy pork in tangy sweet and sour sauce", 16.49, {}),
    ],
    "Burger Junction": [
        ("Classic Cheeseburger", "Beef patty with cheddar, lettuce, tomato, and pickles", 11.99, {}),
        ("Veggie Burger", "Grilled plant-based patty with avocado", 12.49, {"is_vegetarian": True, "is_vegan": True}),
        ("Hand-cut Fries", "Crispy fries with sea salt", 4.49,
         {"is_vegetarian": True, "is_vegan": True, "is_gluten_free": True}),
        ("Chocolate Milkshake", "Thick shake made with real ice cream", 5.99, {"is_vegetarian": True}),
    ],
}


def seed_database(storage: Storage) -> dict:
    if storage.get_restaurants(open_only=False):
        logger.info("Database already has restaurants, skipping seed")
        return {"categories": 0, "restaurants": 0, "food_items": 0, "skipped": True}

    logger.info("Starting database seeding...")
    categories = {}
    for category in CATEGORIES:
        created = storage.create_category(Category(**category).model_dump())
        categories[created["name"]] = created

    restaurants = 0
    food_items = 0
    for category_name, restaurant in RESTAURANTS:
        created = storage.create_restaurant(Restaurant(**restaurant).model_dump())
        restaurants += 1
        for name, description, price, flags in MENU.get(created["name"], []):
            storage.create_food_item(FoodItem(
                restaurant_id=created["id"],
                category_id=categories[category_name]["id"],
                name=name,
                description=description,
                price=price,
                **flags,
            ).model_dump())
            food_items += 1

    logger.info("Seeded %d categories, %d restaurants, %d food items", len(categories), restaurants, food_items)
    return {"categories": len(categories), "restaurants": restaurants, "food_items": food_items, "skipped": False}
