"""
Database Schemas for FoodieExpress

Each Pydantic model in the first half of this file describes one stored
entity. In the document store the collection name is the lowercase class name
(e.g., FoodItem -> "fooditem"); in the relational store the same fields map
onto the tables in models.py. Records are validated through these models
before they are written.

The second half holds the request bodies accepted by the API.
"""
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field

OrderStatusName = Literal["pending", "confirmed", "preparing", "out_for_delivery", "delivered", "cancelled"]


# ===================== Stored entities =====================

class User(BaseModel):
    email: EmailStr = Field(..., description="Unique email address")
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    password: str = Field(..., min_length=6, description="Plain text on the way in, hashed by storage")
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None
    is_verified: bool = False


class Restaurant(BaseModel):
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    cuisine_type: str = Field(..., min_length=1, description="Cuisine tag shown on listings")
    image_url: Optional[str] = None
    rating: float = Field(0.0, ge=0, le=5)
    delivery_time: Optional[str] = Field(None, description="Human readable estimate, e.g. '25-35 min'")
    minimum_order: float = Field(0.0, ge=0)
    delivery_fee: float = Field(0.0, ge=0)
    is_open: bool = True
    address: str = Field(..., min_length=1)
    phone: Optional[str] = None


class Category(BaseModel):
    name: str = Field(..., min_length=1, description="Category name")
    description: Optional[str] = None
    image_url: Optional[str] = None


class FoodItem(BaseModel):
    restaurant_id: str = Field(..., description="Reference to restaurant id")
    category_id: str = Field(..., description="Reference to category id")
    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    price: float = Field(..., ge=0)
    image_url: Optional[str] = None
    is_vegetarian: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_available: bool = True
    preparation_time: Optional[int] = Field(None, ge=0, description="Minutes")
    spice_level: Optional[str] = None
    calories: Optional[int] = Field(None, ge=0)


class OrderItem(BaseModel):
    food_item_id: str
    quantity: int = Field(..., ge=1)
    price: float = Field(..., ge=0, description="Unit price snapshot at order time")
    total_price: float = Field(..., ge=0)
    special_instructions: Optional[str] = None


class Order(BaseModel):
    order_number: str = Field(..., description="Human-friendly order number")
    user_id: str
    restaurant_id: str
    status: OrderStatusName = "pending"
    subtotal: float = 0.0
    delivery_fee: float = 0.0
    tax: float = 0.0
    total: float = 0.0
    delivery_address: str
    phone: str
    notes: Optional[str] = None
    payment_method: str = "card"
    payment_status: Literal["pending", "paid", "failed"] = "pending"
    delivered_at: Optional[datetime] = None


class OrderTracking(BaseModel):
    order_id: str
    status: OrderStatusName
    message: str
    timestamp: datetime


# ===================== Request bodies =====================

class RegisterRequest(BaseModel):
    email: EmailStr
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    password: str = Field(..., min_length=6)
    address: Optional[str] = None
    city: Optional[str] = None
    pincode: Optional[str] = None


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str


class ResendOtpRequest(BaseModel):
    email: EmailStr


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class CartItemCreate(BaseModel):
    food_item_id: str
    quantity: int = Field(1, ge=1)
    special_instructions: Optional[str] = None


class CartItemUpdate(BaseModel):
    quantity: int = Field(..., ge=0, description="0 removes the item")


class OrderDetails(BaseModel):
    restaurant_id: str
    delivery_address: str = Field(..., min_length=1)
    phone: str = Field(..., min_length=1)
    payment_method: str = "card"
    notes: Optional[str] = None


class OrderLine(BaseModel):
    food_item_id: str
    quantity: int = Field(..., ge=1)
    special_instructions: Optional[str] = None


class CreateOrderRequest(BaseModel):
    order: OrderDetails
    items: List[OrderLine]


class UpdateOrderStatusRequest(BaseModel):
    status: str


class PaymentVerifyRequest(BaseModel):
    order_id: str
"""
Notes:
- Prices sent by clients are ignored at checkout; the food item's current price is the snapshot.
- Ids are strings for both backends.
"""
