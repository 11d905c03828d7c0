import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.constants.order_status import PaymentMethod
from storefront.database import get_session
from storefront.notifications.dispatcher import dispatch_order_event
from storefront.notifications.events import OrderNotification
from storefront.schemas.checkout_schemas import CheckoutRequest, CheckoutResponse
from storefront.services.checkout_service import CheckoutResult, checkout
from storefront.services.errors import (
    CheckoutError,
    CheckoutRetriesExhausted,
    InvalidCheckoutRequest,
    InventoryConflict,
    OrderNumberExhausted,
    PaymentGatewayError,
)
from storefront.services.payment_gateway import StripeGateway, get_payment_gateway

logger = logging.getLogger(__name__)

router = APIRouter()


def checkout_http_error(e: CheckoutError) -> HTTPException:
    if isinstance(e, (InvalidCheckoutRequest, InventoryConflict)):
        return HTTPException(400, str(e))
    if isinstance(e, (CheckoutRetriesExhausted, OrderNumberExhausted)):
        return HTTPException(503, str(e))
    if isinstance(e, PaymentGatewayError):
        return HTTPException(502, "Payment could not be started. Please try again.")
    return HTTPException(500, "Checkout failed")


def _response(result: CheckoutResult, message: str) -> CheckoutResponse:
    order = result.order
    payment_session = result.payment_session
    return CheckoutResponse(
        order_id=order.id,
        order_number=order.order_number,
        payment_status=order.payment_status,
        subtotal=order.subtotal,
        shipping=order.shipping_cost,
        tax=order.tax,
        total=order.total,
        session_id=payment_session.session_id if payment_session else None,
        session_url=payment_session.url if payment_session else None,
        message=message,
    )


@router.post("/orders/create", response_model=CheckoutResponse, status_code=201)
async def create_cod_order(
    payload: CheckoutRequest,
    background_tasks: BackgroundTasks,
    session: AsyncSession = Depends(get_session),
):
    if payload.payment_method != PaymentMethod.COD:
        raise HTTPException(400, "Online payments must go through /checkout")

    try:
        result = await checkout(session, payload)
    except CheckoutError as e:
        logger.warning(f"COD order rejected: {e}")
        raise checkout_http_error(e)

    if result.send_confirmation:
        dispatch_order_event(background_tasks, OrderNotification.ORDER_CONFIRMED, result.order.id)

    return _response(result, "Order placed successfully")


@router.post("/checkout", response_model=CheckoutResponse, status_code=201)
async def create_checkout_session(
    payload: CheckoutRequest,
    session: AsyncSession = Depends(get_session),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    if payload.payment_method == PaymentMethod.COD:
        raise HTTPException(400, "Cash on delivery orders must go through /orders/create")

    try:
        result = await checkout(session, payload, gateway=gateway)
    except CheckoutError as e:
        logger.warning(f"Checkout rejected: {e}")
        raise checkout_http_error(e)

    return _response(result, "Redirect to payment to complete your order")
