from sqlalchemy import (
    Boolean, Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Text, UniqueConstraint,
)
from sqlalchemy.orm import declarative_base, relationship

from storage import utcnow

Base = declarative_base()

# Money columns are stored to the cent and read back as floats.
Money = Numeric(10, 2, asdecimal=False)


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    email = Column(String(255), unique=True, nullable=False, index=True)
    first_name = Column(String(255), nullable=False)
    last_name = Column(String(255), nullable=False)
    phone = Column(String(20))
    password = Column(String(255), nullable=False)
    is_verified = Column(Boolean, nullable=False, default=False)
    otp_code = Column(String(10))
    otp_expiry = Column(DateTime(timezone=True))
    address = Column(Text)
    city = Column(String(255))
    pincode = Column(String(20))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    orders = relationship("Order", back_populates="user")
    cart_items = relationship("CartItem", back_populates="user", cascade="all, delete-orphan")


class Restaurant(Base):
    __tablename__ = "restaurants"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    cuisine_type = Column(String(255), nullable=False)
    image_url = Column(String(500))
    rating = Column(Float, default=0.0)
    delivery_time = Column(String(50))
    minimum_order = Column(Money, default=0)
    delivery_fee = Column(Money, default=0)
    is_open = Column(Boolean, nullable=False, default=True)
    address = Column(Text, nullable=False)
    phone = Column(String(50))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    food_items = relationship("FoodItem", back_populates="restaurant")


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    image_url = Column(String(500))
    created_at = Column(DateTime(timezone=True), default=utcnow)

    food_items = relationship("FoodItem", back_populates="category")


class FoodItem(Base):
    __tablename__ = "food_items"

    id = Column(Integer, primary_key=True, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    category_id = Column(Integer, ForeignKey("categories.id"), index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text)
    price = Column(Money, nullable=False)
    image_url = Column(String(500))
    is_vegetarian = Column(Boolean, default=False)
    is_vegan = Column(Boolean, default=False)
    is_gluten_free = Column(Boolean, default=False)
    is_available = Column(Boolean, nullable=False, default=True)
    preparation_time = Column(Integer)  # minutes
    spice_level = Column(String(50))
    calories = Column(Integer)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    restaurant = relationship("Restaurant", back_populates="food_items")
    category = relationship("Category", back_populates="food_items")


class CartItem(Base):
    __tablename__ = "cart_items"
    __table_args__ = (UniqueConstraint("user_id", "food_item_id", name="uq_cart_user_food_item"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    # No FK: a cart row may outlive the food item it points to.
    food_item_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    special_instructions = Column(Text)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="cart_items")


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(32), unique=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    restaurant_id = Column(Integer, ForeignKey("restaurants.id"), nullable=False, index=True)
    status = Column(String(50), nullable=False, default="pending", index=True)
    subtotal = Column(Money, nullable=False)
    delivery_fee = Column(Money, nullable=False)
    tax = Column(Money, nullable=False)
    total = Column(Money, nullable=False)
    delivery_address = Column(Text, nullable=False)
    phone = Column(String(50), nullable=False)
    notes = Column(Text)
    payment_method = Column(String(50))
    payment_status = Column(String(50), nullable=False, default="pending")
    delivered_at = Column(DateTime(timezone=True))
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    user = relationship("User", back_populates="orders")
    restaurant = relationship("Restaurant")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    tracking = relationship(
        "OrderTracking", back_populates="order", cascade="all, delete-orphan",
        order_by="OrderTracking.id",
    )


class OrderItem(Base):
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    food_item_id = Column(Integer, nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Money, nullable=False)  # snapshot of price at order time
    total_price = Column(Money, nullable=False)
    special_instructions = Column(Text)

    order = relationship("Order", back_populates="items")


class OrderTracking(Base):
    __tablename__ = "order_tracking"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    status = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    timestamp = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    order = relationship("Order", back_populates="tracking")
