import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Header, HTTPException, Request
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.database import get_session
from storefront.notifications.dispatcher import dispatch_order_event
from storefront.notifications.events import OrderNotification
from storefront.services.errors import WebhookSignatureError
from storefront.services.payment_gateway import StripeGateway, get_payment_gateway
from storefront.services.payment_service import reconcile_payment_event

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    stripe_signature: Optional[str] = Header(None, alias="stripe-signature"),
    session: AsyncSession = Depends(get_session),
    gateway: StripeGateway = Depends(get_payment_gateway),
):
    # signature is computed over the exact bytes Stripe sent
    payload = await request.body()

    try:
        outcome = await reconcile_payment_event(session, gateway, payload, stripe_signature)
    except WebhookSignatureError as e:
        logger.warning(f"Rejected Stripe webhook: {e}")
        raise HTTPException(400, "Invalid webhook signature")

    if outcome.send_confirmation and outcome.order_id:
        dispatch_order_event(background_tasks, OrderNotification.ORDER_CONFIRMED, outcome.order_id)

    return {"received": True, "action": outcome.action}
