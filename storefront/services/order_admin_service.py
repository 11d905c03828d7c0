import logging
from datetime import date, datetime, time, timedelta, timezone
from typing import List, Optional, Tuple

from sqlalchemy import String, cast, or_
from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.constants.order_status import (
    ALLOWED_PAYMENT_TRANSITIONS,
    ALLOWED_TRANSITIONS,
    STATUS_TIMESTAMPS,
    OrderStatus,
    PaymentMethod,
    PaymentStatus,
)
from storefront.models.order import Order
from storefront.notifications.events import OrderNotification
from storefront.schemas.orders_schemas import OrderStatusUpdate
from storefront.services.errors import InvalidStatusTransition, OrderNotFound
from storefront.services.order_repository import get_order, log_order_event, update_order
from storefront.utils.clock import utcnow
from storefront.utils.pagination import paginate

logger = logging.getLogger(__name__)

STATUS_NOTIFICATIONS = {
    OrderStatus.SHIPPED: OrderNotification.ORDER_SHIPPED,
    OrderStatus.DELIVERED: OrderNotification.ORDER_DELIVERED,
}


def _check_status(order: Order, new_status: OrderStatus) -> None:
    allowed = ALLOWED_TRANSITIONS.get(order.status, [])
    if new_status not in allowed:
        raise InvalidStatusTransition(
            f"Invalid status change from {order.status.value} to {new_status.value}"
        )


def _check_payment_status(order: Order, new_status: PaymentStatus) -> None:
    allowed = ALLOWED_PAYMENT_TRANSITIONS.get(order.payment_status, [])
    if new_status not in allowed:
        raise InvalidStatusTransition(
            f"Invalid payment status change from {order.payment_status.value} to {new_status.value}"
        )

    # online payments are only ever settled by the Stripe webhook
    if new_status == PaymentStatus.PAID and order.payment_method != PaymentMethod.COD:
        raise InvalidStatusTransition(
            "Only cash on delivery orders can be marked paid manually"
        )


async def update_order_status(
    session: AsyncSession,
    order_id: str,
    update: OrderStatusUpdate,
    *,
    admin_id: Optional[str] = None,
) -> Tuple[Order, List[OrderNotification]]:
    """
    Apply an admin fulfilment/payment update to one order.

    - unchanged values are no-ops
    - shipped_at / delivered_at / cancelled_at are set once and never moved
    - stock is NOT touched here; cancelling a paid or COD order leaves
      the units reserved until they are adjusted by hand
    Returns the order and the customer notifications to send after commit.
    """
    notifications: List[OrderNotification] = []
    created_by = f"admin:{admin_id}" if admin_id else "admin"

    async with session.begin():
        order = await get_order(session, order_id, for_update=True)
        if order is None:
            raise OrderNotFound(order_id)

        changes = {}

        if update.status is not None and update.status != order.status:
            _check_status(order, update.status)
            changes["status"] = update.status

            column = STATUS_TIMESTAMPS.get(update.status)
            if column and getattr(order, column) is None:
                changes[column] = utcnow()

            if update.status in STATUS_NOTIFICATIONS:
                notifications.append(STATUS_NOTIFICATIONS[update.status])

        if update.payment_status is not None and update.payment_status != order.payment_status:
            _check_payment_status(order, update.payment_status)
            changes["payment_status"] = update.payment_status

        if "tracking_number" in update.model_fields_set:
            tracking_number = (update.tracking_number or "").strip() or None
            if tracking_number != order.tracking_number:
                changes["tracking_number"] = tracking_number

        if not changes:
            return order, []

        previous_status = order.status
        previous_payment = order.payment_status
        order = await update_order(session, order.id, **changes)

        if "status" in changes:
            log_order_event(
                session,
                order.id,
                "status_changed",
                f"Status changed from {previous_status.value} to {order.status.value}",
                created_by=created_by,
                meta={"from": previous_status.value, "to": order.status.value},
            )

        if "payment_status" in changes:
            event_type = (
                "payment_refunded"
                if order.payment_status == PaymentStatus.REFUNDED
                else "payment_received"
            )
            log_order_event(
                session,
                order.id,
                event_type,
                f"Payment status changed from {previous_payment.value} to {order.payment_status.value}",
                created_by=created_by,
                meta={"from": previous_payment.value, "to": order.payment_status.value},
            )

        if "tracking_number" in changes:
            log_order_event(
                session,
                order.id,
                "tracking_updated",
                "Tracking number updated" if order.tracking_number else "Tracking number removed",
                created_by=created_by,
                meta={"tracking_number": order.tracking_number},
            )

    logger.info(
        f"Admin {created_by} updated order {order.order_number}: "
        f"{', '.join(sorted(changes))}"
    )
    return order, notifications


async def list_orders(
    session: AsyncSession,
    *,
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
):
    query = select(Order)

    if search:
        term = f"%{search.strip()}%"
        query = query.where(
            or_(
                Order.order_number.ilike(term),
                Order.customer_name.ilike(term),
                Order.customer_email.ilike(term),
                cast(Order.id, String).ilike(term),
            )
        )

    if status:
        query = query.where(Order.status == status)

    if payment_status:
        query = query.where(Order.payment_status == payment_status)

    if start_date:
        start = datetime.combine(start_date, time.min, tzinfo=timezone.utc)
        query = query.where(Order.created_at >= start)

    if end_date:
        # inclusive of the whole end day
        end = datetime.combine(end_date + timedelta(days=1), time.min, tzinfo=timezone.utc)
        query = query.where(Order.created_at < end)

    query = query.order_by(Order.created_at.desc())

    return await paginate(session=session, query=query, page=page, limit=limit)
