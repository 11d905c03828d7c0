from fastapi import APIRouter, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.database import get_session
from storefront.schemas.orders_schemas import OrderItemRead, OrderRead, TrackOrderRequest
from storefront.services.order_repository import (
    find_order_for_tracking,
    get_order,
    get_order_items,
)

router = APIRouter()


async def _order_read(session: AsyncSession, order) -> OrderRead:
    items = await get_order_items(session, order.id)
    data = OrderRead.model_validate(order, from_attributes=True)
    data.items = [OrderItemRead.model_validate(i, from_attributes=True) for i in items]
    return data


@router.get("/{order_id}", response_model=OrderRead)
async def get_order_detail(
    order_id: str,
    session: AsyncSession = Depends(get_session),
):
    # order ids are random UUIDs, so the id itself is the access token here
    order = await get_order(session, order_id)
    if not order:
        raise HTTPException(404, "Order not found")

    return await _order_read(session, order)


@router.post("/track", response_model=OrderRead)
async def track_order(
    payload: TrackOrderRequest,
    session: AsyncSession = Depends(get_session),
):
    order = await find_order_for_tracking(session, payload.order_number.strip(), str(payload.email))
    if not order:
        # same answer for wrong number and wrong email
        raise HTTPException(404, "No order found with that order number and email")

    return await _order_read(session, order)
