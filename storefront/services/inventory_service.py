import logging
from enum import Enum
from typing import Optional

from sqlalchemy import update
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.models.order_item import OrderItem
from storefront.models.product import Product
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)


class StockResult(str, Enum):
    OK = "ok"
    INSUFFICIENT = "insufficient"


async def get_product(session: AsyncSession, product_id: str) -> Optional[Product]:
    """Fresh read of a product; never served from the identity map."""
    result = await session.exec(
        select(Product)
        .where(Product.id == product_id)
        .execution_options(populate_existing=True)
    )
    return result.first()


async def decrement_stock(
    session: AsyncSession, product_id: str, quantity: int
) -> StockResult:
    """Take `quantity` units in one guarded UPDATE.

    The `stock >= quantity` predicate is evaluated by the database, so two
    transactions racing on the same row cannot both succeed past zero.
    """
    result = await session.exec(
        update(Product)
        .where(Product.id == product_id, Product.stock >= quantity)
        .values(stock=Product.stock - quantity, updated_at=utcnow())
    )

    if result.rowcount != 1:
        logger.info(f"Stock decrement refused for {product_id} (qty {quantity})")
        return StockResult.INSUFFICIENT

    return StockResult.OK


async def increment_stock(
    session: AsyncSession, product_id: str, quantity: int
) -> StockResult:
    result = await session.exec(
        update(Product)
        .where(Product.id == product_id)
        .values(stock=Product.stock + quantity, updated_at=utcnow())
    )

    if result.rowcount != 1:
        # product deleted since purchase; nothing left to restock
        logger.warning(f"Cannot restock missing product {product_id} (qty {quantity})")

    return StockResult.OK


async def restore_order_stock(session: AsyncSession, order_id: str) -> int:
    """Give back every unit reserved for an order. Returns units restored.

    Callers must gate this on the order's payment state; it is not
    idempotent on its own.
    """
    items = (
        await session.exec(
            select(OrderItem).where(OrderItem.order_id == order_id)
        )
    ).all()

    restored = 0
    for item in items:
        await increment_stock(session, item.product_id, item.quantity)
        restored += item.quantity

    logger.info(f"Restored {restored} units across {len(items)} items for order {order_id}")
    return restored
