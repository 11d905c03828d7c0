"""Stripe webhook reconciliation.

Every event is verified, then applied at most once: the provider event id
is written to the ProcessedWebhookEvent ledger in the same transaction as
the state change it causes. The per-order payment_status checks below are
the second guard, for distinct events that describe the same transition.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.constants.order_status import PaymentMethod, PaymentStatus
from storefront.models.order import Order
from storefront.models.webhook_event import ProcessedWebhookEvent
from storefront.services.inventory_service import restore_order_stock
from storefront.services.order_repository import get_order, log_order_event, update_order

logger = logging.getLogger(__name__)

PAID_EVENTS = {
    "checkout.session.completed",
    "checkout.session.async_payment_succeeded",
    "payment_intent.succeeded",
}

FAILED_EVENTS = {
    "payment_intent.payment_failed",
    "checkout.session.async_payment_failed",
    "checkout.session.expired",
}


@dataclass
class WebhookOutcome:
    event_id: str
    event_type: str
    action: str
    order_id: Optional[str] = None
    send_confirmation: bool = False


def _payment_intent_id(obj: dict) -> Optional[str]:
    if obj.get("object") == "payment_intent":
        return obj.get("id")
    intent = obj.get("payment_intent")
    # expanded sessions carry the whole intent object
    if isinstance(intent, dict):
        return intent.get("id")
    return intent


async def _mark_paid(
    session: AsyncSession, order: Order, obj: dict, event_type: str
) -> Tuple[str, bool]:
    intent_id = _payment_intent_id(obj)

    if event_type == "checkout.session.completed" and obj.get("payment_status") == "unpaid":
        # delayed payment method; async_payment_succeeded/failed will follow
        logger.info(f"Session completed for {order.order_number}, payment still pending")
        return "awaiting_payment", False

    if order.payment_status == PaymentStatus.PAID:
        if intent_id and not order.stripe_payment_intent_id:
            await update_order(session, order.id, stripe_payment_intent_id=intent_id)
        logger.info(f"Order {order.order_number} already paid, nothing to do")
        return "already_paid", False

    if order.payment_status != PaymentStatus.PENDING:
        logger.error(
            f"Payment succeeded for order {order.order_number} in state "
            f"{order.payment_status.value}; needs manual review"
        )
        log_order_event(
            session,
            order.id,
            "payment_conflict",
            f"Payment received while order was {order.payment_status.value}; review manually",
            meta={
                "payment_intent": intent_id,
                "event_type": event_type,
                "payment_status": order.payment_status.value,
            },
        )
        return "conflict", False

    fields = {"payment_status": PaymentStatus.PAID}
    if intent_id:
        fields["stripe_payment_intent_id"] = intent_id
    await update_order(session, order.id, **fields)

    log_order_event(
        session,
        order.id,
        "payment_paid",
        "Payment received",
        meta={"payment_intent": intent_id, "event_type": event_type},
    )
    logger.info(f"✅ Payment completed for order {order.order_number}")
    return "paid", True


async def _mark_failed(
    session: AsyncSession, order: Order, obj: dict, event_type: str
) -> Tuple[str, bool]:
    # only a PENDING order still holds reserved stock
    if order.payment_status != PaymentStatus.PENDING:
        logger.info(
            f"Order {order.order_number} is {order.payment_status.value}; "
            f"ignoring {event_type}, stock untouched"
        )
        return "already_settled", False

    fields = {"payment_status": PaymentStatus.FAILED}
    intent_id = _payment_intent_id(obj)
    if intent_id:
        fields["stripe_payment_intent_id"] = intent_id
    await update_order(session, order.id, **fields)

    restored = await restore_order_stock(session, order.id)

    log_order_event(
        session,
        order.id,
        "payment_failed",
        "Payment failed",
        meta={"payment_intent": intent_id, "event_type": event_type},
    )
    log_order_event(
        session,
        order.id,
        "stock_restored",
        f"{restored} units returned to stock",
        meta={"units": restored},
    )
    logger.info(f"❌ Payment failed for order {order.order_number}. Stock restored.")
    return "failed", False


async def apply_payment_event(session: AsyncSession, event: dict) -> WebhookOutcome:
    """Apply one verified Stripe event. Safe to call again with the same event."""
    event_id = event["id"]
    event_type = event["type"]

    if event_type in PAID_EVENTS:
        handler = _mark_paid
    elif event_type in FAILED_EVENTS:
        handler = _mark_failed
    else:
        logger.info(f"Unhandled event type: {event_type}")
        return WebhookOutcome(event_id, event_type, "ignored")

    obj = (event.get("data") or {}).get("object") or {}
    order_id = (obj.get("metadata") or {}).get("orderId")

    if not order_id:
        logger.warning(f"No orderId in metadata of {event_type} {event_id}")
        return WebhookOutcome(event_id, event_type, "unmatched")

    try:
        async with session.begin():
            if await session.get(ProcessedWebhookEvent, event_id) is not None:
                logger.info(f"Event {event_id} already processed")
                return WebhookOutcome(event_id, event_type, "duplicate", order_id)

            session.add(
                ProcessedWebhookEvent(id=event_id, event_type=event_type, order_id=order_id)
            )
            await session.flush()

            order = await get_order(session, order_id, for_update=True)

            if order is None:
                logger.warning(f"{event_type} {event_id} references unknown order {order_id}")
                action, send_confirmation = "unmatched", False
            elif order.payment_method == PaymentMethod.COD:
                logger.warning(f"Ignoring {event_type} for COD order {order.order_number}")
                action, send_confirmation = "ignored", False
            else:
                action, send_confirmation = await handler(session, order, obj, event_type)
    except IntegrityError as e:
        if "processed_webhook_event" not in str(e.orig):
            raise
        # a concurrent delivery of the same event got the ledger row first
        logger.info(f"Event {event_id} processed concurrently, skipping")
        return WebhookOutcome(event_id, event_type, "duplicate", order_id)

    return WebhookOutcome(event_id, event_type, action, order_id, send_confirmation)


async def reconcile_payment_event(
    session: AsyncSession, gateway, payload: bytes, signature: Optional[str]
) -> WebhookOutcome:
    """Verify the raw webhook request, then apply the event it carries."""
    event = gateway.verify_webhook(payload, signature)
    return await apply_payment_event(session, event)
