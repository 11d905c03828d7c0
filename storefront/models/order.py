from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from storefront.constants.order_status import OrderStatus, PaymentMethod, PaymentStatus
from storefront.utils.clock import UTCDateTime, utcnow


class Order(SQLModel, table=True):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint(
            "total = subtotal + shipping_cost + tax", name="ck_orders_total"
        ),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    order_number: str = Field(unique=True, index=True)

    # customer snapshot
    customer_name: str
    customer_email: str = Field(index=True)
    customer_phone: Optional[str] = None

    shipping_address_line1: str
    shipping_address_line2: Optional[str] = None
    shipping_city: str
    shipping_state: str
    shipping_postal_code: str
    shipping_country: str

    # billing mirrors shipping for now
    billing_address_line1: str
    billing_address_line2: Optional[str] = None
    billing_city: str
    billing_state: str
    billing_postal_code: str
    billing_country: str

    subtotal: int
    shipping_cost: int
    tax: int
    total: int

    payment_method: PaymentMethod
    status: OrderStatus = Field(default=OrderStatus.PENDING)
    payment_status: PaymentStatus = Field(default=PaymentStatus.PENDING)

    tracking_number: Optional[str] = None
    stripe_session_id: Optional[str] = Field(default=None, index=True)
    stripe_payment_intent_id: Optional[str] = Field(default=None, index=True)

    shipped_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    delivered_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    cancelled_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
