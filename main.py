import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from bson import ObjectId
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

import config
import schemas
from admin_auth import authenticate_admin, create_admin_if_not_exists, is_admin
from analytics import build_analytics
from database import build_storage
from deps import get_current_user, get_email_service, get_storage, get_tracker, require_admin
from email_service import EmailService
from order_status import InvalidTransition, OrderStatus, status_message
from order_tracking import OrderNotFound, OrderTrackingService, StatusConflict
from seed_data import seed_database
from storage import OTP_TTL, Storage, public_user, utcnow

# ----- Logging -----
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] [foodieexpress] %(name)s: %(message)s",
)
logger = logging.getLogger("foodieexpress.api")

UNKNOWN_ITEM = "Unknown item"


# ===================== Presentation helpers =====================

def present_line(row: dict) -> dict:
    """Cart rows and order lines may reference a food item that no longer exists."""
    food = row.get("food_item")
    row["display_name"] = food.get("name") if food and food.get("name") else UNKNOWN_ITEM
    return row


def present_cart_row(row: dict) -> dict:
    row = present_line(row)
    price = float((row.get("food_item") or {}).get("price") or 0)
    row["line_total"] = round(price * row.get("quantity", 0), 2)
    return row


def present_order(order: dict) -> dict:
    order["order_items"] = [present_line(item) for item in order.get("order_items") or []]
    order["tracking"] = order.get("tracking") or []
    return order


def ensure_owner_or_admin(user: dict, owner_id: Optional[str]):
    if str(owner_id) != str(user["id"]) and not is_admin(user):
        raise HTTPException(status_code=403, detail="You do not have access to this order")


def new_order_number() -> str:
    return f"ORD-{str(ObjectId())[-8:].upper()}"


def price_order_lines(storage: Storage, restaurant: dict, lines: List[schemas.OrderLine]) -> List[dict]:
    if not lines:
        raise HTTPException(status_code=400, detail="Cart is empty")
    priced = []
    for line in lines:
        item = storage.get_food_item(line.food_item_id)
        if not item:
            raise HTTPException(status_code=400, detail=f"Food item {line.food_item_id} not found")
        if str(item.get("restaurant_id")) != str(restaurant["id"]):
            raise HTTPException(status_code=400, detail=f"{item['name']} is not on this restaurant's menu")
        if not item.get("is_available", True):
            raise HTTPException(status_code=400, detail=f"{item['name']} is currently unavailable")
        price = round(float(item["price"]), 2)
        priced.append(schemas.OrderItem(
            food_item_id=item["id"],
            quantity=line.quantity,
            price=price,
            total_price=round(price * line.quantity, 2),
            special_instructions=line.special_instructions,
        ).model_dump())
    return priced


# ===================== App =====================

def create_app(storage: Optional[Storage] = None,
               email_service: Optional[EmailService] = None,
               start_tracker: bool = config.ORDER_TRACKING_ENABLED) -> FastAPI:

    def init_state(app: FastAPI, storage: Storage):
        app.state.storage = storage
        app.state.tracker = OrderTrackingService(storage, app.state.email_service)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if app.state.storage is None:
            init_state(app, build_storage())
        create_admin_if_not_exists(app.state.storage)
        if start_tracker:
            app.state.tracker.start()
        yield
        await app.state.tracker.stop()

    app = FastAPI(title="FoodieExpress API", version="1.0.0", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.email_service = email_service or EmailService()
    app.state.storage = None
    app.state.tracker = None
    if storage is not None:
        init_state(app, storage)

    register_error_handlers(app)
    register_routes(app)
    return app


def register_error_handlers(app: FastAPI):
    @app.exception_handler(InvalidTransition)
    async def invalid_transition(request: Request, exc: InvalidTransition):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(StatusConflict)
    async def status_conflict(request: Request, exc: StatusConflict):
        return JSONResponse(status_code=409, content={"detail": str(exc)})

    @app.exception_handler(OrderNotFound)
    async def order_not_found(request: Request, exc: OrderNotFound):
        return JSONResponse(status_code=404, content={"detail": "Order not found"})

    @app.exception_handler(Exception)
    async def unhandled(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return JSONResponse(status_code=500, content={"detail": "Internal server error"})


def register_routes(app: FastAPI):

    # ===================== Public Endpoints =====================
    @app.get("/")
    def root():
        return {"message": "FoodieExpress API running"}

    @app.get("/api/health")
    def health(storage: Storage = Depends(get_storage), tracker: OrderTrackingService = Depends(get_tracker)):
        return {
            "status": "ok",
            "storage": storage.backend,
            "order_tracking": "running" if tracker.running else "stopped",
        }

    @app.post("/api/seed")
    def seed(storage: Storage = Depends(get_storage)):
        result = seed_database(storage)
        return {"message": "Database seeded successfully", "data": result}

    # ===================== Auth =====================
    @app.post("/api/register", status_code=201)
    def register(payload: schemas.RegisterRequest, storage: Storage = Depends(get_storage),
                 email_service: EmailService = Depends(get_email_service)):
        if storage.get_user_by_email(payload.email):
            raise HTTPException(status_code=400, detail="User already exists with this email")
        user = storage.create_user(schemas.User(**payload.model_dump()).model_dump())
        if not email_service.send_otp_email(user["email"], user["otp_code"], user.get("first_name")):
            logger.error("Failed to send OTP email to %s", user["email"])
        return {
            "message": "User registered successfully. Please verify your email with the OTP sent.",
            "user_id": user["id"],
            "email": user["email"],
        }

    @app.post("/api/verify-otp")
    def verify_otp(payload: schemas.VerifyOtpRequest, storage: Storage = Depends(get_storage)):
        if not storage.verify_user(payload.email, payload.otp):
            raise HTTPException(status_code=400, detail="Invalid or expired OTP")
        user = storage.get_user_by_email(payload.email)
        return {"message": "Email verified successfully", "user": public_user(user)}

    @app.post("/api/resend-otp")
    def resend_otp(payload: schemas.ResendOtpRequest, storage: Storage = Depends(get_storage),
                   email_service: EmailService = Depends(get_email_service)):
        user = storage.get_user_by_email(payload.email)
        if not user:
            raise HTTPException(status_code=404, detail="User not found")
        if user.get("is_verified"):
            raise HTTPException(status_code=400, detail="User is already verified")
        otp_code = storage.generate_otp()
        storage.update_user(user["id"], {"otp_code": otp_code, "otp_expiry": utcnow() + OTP_TTL})
        email_service.send_otp_email(user["email"], otp_code, user.get("first_name"))
        return {"message": "OTP sent successfully"}

    @app.post("/api/login")
    def login(payload: schemas.LoginRequest, storage: Storage = Depends(get_storage)):
        user = storage.get_user_by_email(payload.email)
        if is_admin(payload.email):
            valid = authenticate_admin(storage, payload.email, payload.password)
        else:
            valid = user is not None and storage.verify_password(payload.password, user["password"])
        if not user or not valid:
            raise HTTPException(status_code=401, detail="Invalid credentials")
        if not user.get("is_verified"):
            raise HTTPException(status_code=401, detail="Please verify your email first")
        return {
            "message": "Login successful",
            "user_id": user["id"],
            "is_admin": is_admin(user),
            "user": public_user(user),
        }

    # ===================== Restaurants =====================
    @app.get("/api/restaurants")
    def list_restaurants(storage: Storage = Depends(get_storage)):
        return storage.get_restaurants()

    @app.get("/api/restaurants/search")
    def search_restaurants(q: str = "", cuisineType: Optional[str] = None, storage: Storage = Depends(get_storage)):
        return storage.search_restaurants(q, cuisineType)

    @app.get("/api/restaurants/{restaurant_id}")
    def get_restaurant(restaurant_id: str, storage: Storage = Depends(get_storage)):
        restaurant = storage.get_restaurant(restaurant_id)
        if not restaurant:
            raise HTTPException(404, "Restaurant not found")
        return restaurant

    # ===================== Categories =====================
    @app.get("/api/categories")
    def list_categories(storage: Storage = Depends(get_storage)):
        return storage.get_categories()

    # ===================== Food Items =====================
    @app.get("/api/food-items")
    def list_food_items(restaurantId: Optional[str] = None, categoryId: Optional[str] = None,
                        storage: Storage = Depends(get_storage)):
        return storage.get_food_items(restaurantId, categoryId)

    @app.get("/api/food-items/search")
    def search_food_items(q: str = "", storage: Storage = Depends(get_storage)):
        return storage.search_food_items(q)

    @app.get("/api/food-items/{food_item_id}")
    def get_food_item(food_item_id: str, storage: Storage = Depends(get_storage)):
        item = storage.get_food_item(food_item_id)
        if not item:
            raise HTTPException(404, "Food item not found")
        return item

    # ===================== Cart =====================
    @app.get("/api/cart")
    def get_cart(user: dict = Depends(get_current_user), storage: Storage = Depends(get_storage)):
        return [present_cart_row(row) for row in storage.get_cart_items(user["id"])]

    @app.post("/api/cart", status_code=201)
    def add_to_cart(payload: schemas.CartItemCreate, user: dict = Depends(get_current_user),
                    storage: Storage = Depends(get_storage)):
        item = storage.get_food_item(payload.food_item_id)
        if not item:
            raise HTTPException(404, "Food item not found")
        if not item.get("is_available", True):
            raise HTTPException(400, f"{item['name']} is currently unavailable")
        return storage.add_to_cart(user["id"], item["id"], payload.quantity, payload.special_instructions)

    @app.put("/api/cart/{food_item_id}")
    def update_cart_item(food_item_id: str, payload: schemas.CartItemUpdate,
                         user: dict = Depends(get_current_user), storage: Storage = Depends(get_storage)):
        row = storage.update_cart_item(user["id"], food_item_id, payload.quantity)
        if row is None:
            raise HTTPException(404, "Cart item not found")
        return row

    @app.delete("/api/cart/{food_item_id}")
    def remove_from_cart(food_item_id: str, user: dict = Depends(get_current_user),
                         storage: Storage = Depends(get_storage)):
        if not storage.remove_from_cart(user["id"], food_item_id):
            raise HTTPException(404, "Cart item not found")
        return {"message": "Item removed from cart"}

    @app.delete("/api/cart")
    def clear_cart(user: dict = Depends(get_current_user), storage: Storage = Depends(get_storage)):
        removed = storage.clear_cart(user["id"])
        return {"message": "Cart cleared", "removed": removed}

    # ===================== Orders =====================
    @app.post("/api/orders", status_code=201)
    def create_order(payload: schemas.CreateOrderRequest, user: dict = Depends(get_current_user),
                     storage: Storage = Depends(get_storage),
                     email_service: EmailService = Depends(get_email_service)):
        restaurant = storage.get_restaurant(payload.order.restaurant_id)
        if not restaurant:
            raise HTTPException(404, "Restaurant not found")
        lines = price_order_lines(storage, restaurant, payload.items)

        subtotal = round(sum(line["total_price"] for line in lines), 2)
        delivery_fee = round(float(restaurant.get("delivery_fee") or 0), 2)
        tax = round(subtotal * config.TAX_RATE, 2)
        total = round(subtotal + delivery_fee + tax, 2)

        order = schemas.Order(
            order_number=new_order_number(),
            user_id=user["id"],
            restaurant_id=restaurant["id"],
            status=OrderStatus.PENDING.value,
            subtotal=subtotal,
            delivery_fee=delivery_fee,
            tax=tax,
            total=total,
            delivery_address=payload.order.delivery_address,
            phone=payload.order.phone,
            notes=payload.order.notes,
            payment_method=payload.order.payment_method,
        )
        created = storage.create_order(order.model_dump(), lines, status_message(OrderStatus.PENDING.value))
        logger.info("Order %s (%s) created for user %s, total %.2f",
                    created["id"], created["order_number"], user["id"], total)

        email_service.send_payment_verification_email(created, user["email"])
        storage.clear_cart(user["id"])
        return present_order(created)

    @app.get("/api/orders")
    def list_orders(user: dict = Depends(get_current_user), storage: Storage = Depends(get_storage)):
        return [present_order(o) for o in storage.get_orders(user["id"])]

    @app.get("/api/orders/{order_id}")
    def get_order(order_id: str, user: dict = Depends(get_current_user), storage: Storage = Depends(get_storage)):
        order = storage.get_order(order_id)
        if not order:
            raise HTTPException(404, "Order not found")
        ensure_owner_or_admin(user, order["user_id"])
        return present_order(order)

    @app.put("/api/orders/{order_id}/status")
    def update_order_status(order_id: str, payload: schemas.UpdateOrderStatusRequest,
                            admin: dict = Depends(require_admin),
                            tracker: OrderTrackingService = Depends(get_tracker)):
        order = tracker.update_order_status(order_id, payload.status)
        return present_order(order)

    # ===================== Payments =====================
    @app.post("/api/payment/verify")
    def verify_payment(payload: schemas.PaymentVerifyRequest, user: dict = Depends(get_current_user),
                       storage: Storage = Depends(get_storage),
                       tracker: OrderTrackingService = Depends(get_tracker)):
        order = storage.get_order(payload.order_id)
        if not order:
            raise HTTPException(404, "Order not found")
        ensure_owner_or_admin(user, order["user_id"])
        order = tracker.verify_payment(payload.order_id)
        return {"message": "Payment verified and order confirmed", "order": present_order(order)}

    # ===================== Admin =====================
    @app.get("/api/admin/analytics")
    def admin_analytics(admin: dict = Depends(require_admin), storage: Storage = Depends(get_storage)):
        return build_analytics(storage.get_all_users(), storage.get_all_orders(), utcnow())

    @app.get("/api/admin/users")
    def admin_users(admin: dict = Depends(require_admin), storage: Storage = Depends(get_storage)):
        return [public_user(u) for u in storage.get_all_users()]

    @app.get("/api/admin/orders")
    def admin_orders(admin: dict = Depends(require_admin), storage: Storage = Depends(get_storage)):
        return storage.get_all_orders()

    @app.get("/api/admin/pending-orders")
    def admin_pending_orders(admin: dict = Depends(require_admin), storage: Storage = Depends(get_storage)):
        pending = []
        for order in storage.get_all_active_orders():
            if order["status"] != OrderStatus.PENDING.value:
                continue
            details = storage.get_order(order["id"])
            if not details:
                continue
            owner = storage.get_user(order["user_id"])
            details["user_email"] = owner.get("email") if owner else None
            pending.append(present_order(details))
        return pending

    @app.post("/api/admin/orders/{order_id}/confirm-payment")
    def admin_confirm_payment(order_id: str, admin: dict = Depends(require_admin),
                              tracker: OrderTrackingService = Depends(get_tracker)):
        order = tracker.verify_payment(order_id)
        return {"message": "Payment confirmed and order processed", "order": present_order(order)}

    @app.post("/api/admin/restaurants", status_code=201)
    def admin_create_restaurant(payload: schemas.Restaurant, admin: dict = Depends(require_admin),
                                storage: Storage = Depends(get_storage)):
        return storage.create_restaurant(payload.model_dump())

    @app.post("/api/admin/categories", status_code=201)
    def admin_create_category(payload: schemas.Category, admin: dict = Depends(require_admin),
                              storage: Storage = Depends(get_storage)):
        return storage.create_category(payload.model_dump())

    @app.post("/api/admin/menu-items", status_code=201)
    def admin_create_menu_item(payload: schemas.FoodItem, admin: dict = Depends(require_admin),
                               storage: Storage = Depends(get_storage)):
        if not storage.get_restaurant(payload.restaurant_id):
            raise HTTPException(404, "Restaurant not found")
        if not storage.get_category(payload.category_id):
            raise HTTPException(404, "Category not found")
        return storage.create_food_item(payload.model_dump())


app = create_app()


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", config.PORT))
    uvicorn.run(app, host="0.0.0.0", port=port)
