from typing import Optional

from sqlmodel import Field, SQLModel


class OrderItem(SQLModel, table=True):
    __tablename__ = "order_item"

    id: Optional[int] = Field(default=None, primary_key=True)
    order_id: str = Field(foreign_key="orders.id", index=True, ondelete="CASCADE")

    # not a foreign key: the product may be edited or removed later
    product_id: str = Field(index=True)

    product_name: str
    product_slug: str
    product_image: Optional[str] = None
    price: int
    quantity: int
