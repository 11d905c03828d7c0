import logging
from datetime import date
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.constants.order_status import OrderStatus, PaymentStatus
from storefront.database import get_session
from storefront.notifications.dispatcher import dispatch_order_event
from storefront.schemas.orders_schemas import OrderItemRead, OrderRead, OrderStatusUpdate
from storefront.services.errors import InvalidStatusTransition, OrderNotFound
from storefront.services.order_admin_service import list_orders, update_order_status
from storefront.services.order_repository import get_order_events, get_order_items
from storefront.utils.token import get_current_admin

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("")
async def list_admin_orders(
    page: int = 1,
    limit: int = 10,
    search: Optional[str] = None,
    status: Optional[OrderStatus] = None,
    payment_status: Optional[PaymentStatus] = None,
    start_date: Optional[date] = Query(None),
    end_date: Optional[date] = Query(None),
    session: AsyncSession = Depends(get_session),
    _: dict = Depends(get_current_admin),
):
    data = await list_orders(
        session,
        page=page,
        limit=limit,
        search=search,
        status=status,
        payment_status=payment_status,
        start_date=start_date,
        end_date=end_date,
    )

    data["results"] = [
        {
            "order_id": o.id,
            "order_number": o.order_number,
            "customer_name": o.customer_name,
            "customer_email": o.customer_email,
            "total": o.total,
            "payment_method": o.payment_method,
            "status": o.status,
            "payment_status": o.payment_status,
            "created_at": o.created_at,
        }
        for o in data["results"]
    ]
    return data


@router.get("/{order_id}/events")
async def list_order_events(
    order_id: str,
    session: AsyncSession = Depends(get_session),
    _: dict = Depends(get_current_admin),
):
    events = await get_order_events(session, order_id)
    return [
        {
            "event_type": e.event_type,
            "label": e.label,
            "meta": e.meta,
            "created_by": e.created_by,
            "created_at": e.created_at,
        }
        for e in events
    ]


@router.patch("/{order_id}", response_model=OrderRead)
async def update_order(
    order_id: str,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
    admin: dict = Depends(get_current_admin),
):
    try:
        order, notifications = await update_order_status(
            session, order_id, payload, admin_id=admin.get("sub")
        )
    except OrderNotFound:
        raise HTTPException(404, "Order not found")
    except InvalidStatusTransition as e:
        raise HTTPException(409, str(e))

    for notification in notifications:
        dispatch_order_event(background_tasks, notification, order.id)

    items = await get_order_items(session, order.id)
    data = OrderRead.model_validate(order, from_attributes=True)
    data.items = [OrderItemRead.model_validate(i, from_attributes=True) for i in items]
    return data
