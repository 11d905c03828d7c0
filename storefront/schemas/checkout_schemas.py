# storefront/schemas/checkout_schemas.py
from typing import List, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from storefront.constants.order_status import PaymentMethod, PaymentStatus


class CartLine(BaseModel):
    product_id: str
    name: str
    slug: str
    image: Optional[str] = None
    price: int = Field(ge=0)        # unit price in paise, as the client saw it
    quantity: int = Field(gt=0)


class ShippingAddress(BaseModel):
    full_name: str
    email: EmailStr
    phone: Optional[str] = None
    address_line1: str
    address_line2: Optional[str] = None
    city: str
    state: str
    postal_code: str
    country: str = "India"


class CheckoutRequest(BaseModel):
    items: List[CartLine]
    shipping_address: ShippingAddress
    payment_method: PaymentMethod

    # client-side figures; recomputed on the server
    subtotal: Optional[int] = None
    shipping: Optional[int] = None
    tax: Optional[int] = None
    total: Optional[int] = None

    @field_validator("payment_method", mode="before")
    @classmethod
    def normalise_payment_method(cls, value):
        if isinstance(value, str):
            return value.strip().upper()
        return value


class CheckoutResponse(BaseModel):
    order_id: str
    order_number: str
    payment_status: PaymentStatus
    subtotal: int
    shipping: int
    tax: int
    total: int
    session_id: Optional[str] = None
    session_url: Optional[str] = None
    message: str
