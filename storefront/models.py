from __future__ import annotations

from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class Role(str, Enum):
    SHOPPER = "shopper"
    MERCHANT = "merchant"
    ADMIN = "admin"


class OrderStatus(str, Enum):
    PENDING = "Pending"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"


class PaymentStatus(str, Enum):
    UNPAID = "Unpaid"
    PAID = "Paid"
    REFUNDED = "Refunded"


class ProductStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class ProductOut(BaseModel):
    product_id: int
    name: str
    description: Optional[str] = None
    price: float
    stock: int
    in_stock: bool
    subcategory_id: int
    subcategory_name: Optional[str] = None
    merchant_id: Optional[int] = None
    image_url: str = ""
    status: str = ProductStatus.ACTIVE.value


class CreateProductIn(BaseModel):
    name: str = Field(min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price: Decimal = Field(gt=0, max_digits=12, decimal_places=2)
    stock: int = Field(default=0, ge=0)
    subcategory_id: int
    image_url: str = ""


class UpdateProductIn(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    price: Optional[Decimal] = Field(default=None, gt=0, max_digits=12, decimal_places=2)
    stock: Optional[int] = Field(default=None, ge=0)
    status: Optional[ProductStatus] = None


class CartItemIn(BaseModel):
    product_id: int
    quantity: int = Field(default=1, ge=1)


class CartQuantityIn(BaseModel):
    # below 1 removes the line
    quantity: int


class CartLineOut(BaseModel):
    cart_line_id: int
    product_id: int
    product_name: str
    unit_price: float
    quantity: int
    stock: int
    line_total: float
    added_at: str


class CartOut(BaseModel):
    user_id: int
    lines: List[CartLineOut] = Field(default_factory=list)
    item_count: int = 0
    total: float = 0.0


class OrderLineOut(BaseModel):
    order_line_id: int
    product_id: int
    product_name: str
    quantity: int
    unit_price: float
    line_total: float


class OrderOut(BaseModel):
    order_id: int
    user_id: int
    created_at: str
    total_amount: float
    order_status: OrderStatus
    payment_status: PaymentStatus
    tracking_number: Optional[str] = None
    payment_date: Optional[str] = None
    lines: List[OrderLineOut] = Field(default_factory=list)


class OrderStatusIn(BaseModel):
    status: OrderStatus
    tracking_number: Optional[str] = Field(default=None, max_length=100)


class ShipOrderIn(BaseModel):
    tracking_number: str = Field(min_length=1, max_length=100)


class WishlistItemOut(ProductOut):
    added_at: str


class AuthSignupIn(BaseModel):
    email: str = Field(max_length=320)
    display_name: str = Field(min_length=1, max_length=200)
    password: str


class AuthLoginIn(BaseModel):
    email: str
    password: str


class AuthTokenOut(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: int
    role: Role
    display_name: Optional[str] = None


class AuthMeOut(BaseModel):
    user_id: int
    role: Role
