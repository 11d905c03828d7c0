import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.models.order import Order
from storefront.models.order_event import OrderEvent
from storefront.models.order_item import OrderItem
from storefront.services.errors import DuplicateOrderNumber, OrderNotFound
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)


async def order_number_exists(session: AsyncSession, order_number: str) -> bool:
    result = await session.exec(
        select(Order.id).where(Order.order_number == order_number)
    )
    return result.first() is not None


async def create_order_with_items(
    session: AsyncSession, order: Order, items: List[OrderItem]
) -> Order:
    """Stage an order and its item snapshots in the caller's transaction.

    A clash on the unique `order_number` surfaces as DuplicateOrderNumber so
    the caller can regenerate and retry the whole transaction.
    """
    session.add(order)
    try:
        await session.flush()
    except IntegrityError as exc:
        if "order_number" in str(exc.orig):
            raise DuplicateOrderNumber(order.order_number) from exc
        raise

    for item in items:
        item.order_id = order.id
        session.add(item)
    await session.flush()

    return order


async def get_order(
    session: AsyncSession, order_id: str, *, for_update: bool = False
) -> Optional[Order]:
    statement = (
        select(Order)
        .where(Order.id == order_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        statement = statement.with_for_update()

    return (await session.exec(statement)).first()


async def get_order_items(session: AsyncSession, order_id: str) -> List[OrderItem]:
    result = await session.exec(
        select(OrderItem)
        .where(OrderItem.order_id == order_id)
        .order_by(OrderItem.id)
    )
    return list(result.all())


async def update_order(session: AsyncSession, order_id: str, **fields) -> Order:
    order = await get_order(session, order_id)
    if order is None:
        raise OrderNotFound(order_id)

    for name, value in fields.items():
        setattr(order, name, value)
    order.updated_at = utcnow()

    session.add(order)
    await session.flush()
    return order


async def find_order_for_tracking(
    session: AsyncSession, order_number: str, email: str
) -> Optional[Order]:
    result = await session.exec(
        select(Order).where(
            Order.order_number == order_number,
            func.lower(Order.customer_email) == email.strip().lower(),
        )
    )
    return result.first()


def log_order_event(
    session: AsyncSession,
    order_id: str,
    event_type: str,
    label: str,
    created_by: str = "system",
    meta: Optional[dict] = None,
):
    """
    Append-only event log for order timeline
    """
    session.add(
        OrderEvent(
            order_id=order_id,
            event_type=event_type,
            label=label,
            meta=meta,
            created_by=created_by,
        )
    )


async def get_order_events(session: AsyncSession, order_id: str) -> List[OrderEvent]:
    result = await session.exec(
        select(OrderEvent)
        .where(OrderEvent.order_id == order_id)
        .order_by(OrderEvent.created_at)
    )
    return list(result.all())
