from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr

from storefront.constants.order_status import OrderStatus, PaymentMethod, PaymentStatus


class OrderItemRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: str
    product_name: str
    product_slug: str
    product_image: Optional[str] = None
    price: int
    quantity: int


class OrderRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    order_number: str
    customer_name: str
    customer_email: str
    customer_phone: Optional[str] = None

    shipping_address_line1: str
    shipping_address_line2: Optional[str] = None
    shipping_city: str
    shipping_state: str
    shipping_postal_code: str
    shipping_country: str

    subtotal: int
    shipping_cost: int
    tax: int
    total: int

    payment_method: PaymentMethod
    status: OrderStatus
    payment_status: PaymentStatus
    tracking_number: Optional[str] = None

    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    created_at: datetime

    items: List[OrderItemRead] = []


class TrackOrderRequest(BaseModel):
    order_number: str
    email: EmailStr


class OrderStatusUpdate(BaseModel):
    status: Optional[OrderStatus] = None
    payment_status: Optional[PaymentStatus] = None
    tracking_number: Optional[str] = None
