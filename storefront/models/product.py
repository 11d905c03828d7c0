from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy import CheckConstraint
from sqlmodel import Field, SQLModel

from storefront.utils.clock import UTCDateTime, utcnow


class Product(SQLModel, table=True):
    """Catalog row; only the stock-relevant fields live here."""

    __tablename__ = "product"
    __table_args__ = (
        CheckConstraint("stock >= 0", name="ck_product_stock_non_negative"),
    )

    id: str = Field(default_factory=lambda: str(uuid4()), primary_key=True)
    name: str
    slug: str = Field(unique=True, index=True)
    image: Optional[str] = None

    # smallest currency unit (paise)
    price: int
    stock: int = Field(default=0)
    is_active: bool = Field(default=True)

    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
