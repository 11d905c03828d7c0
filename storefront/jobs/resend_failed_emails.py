"""Out-of-band retry for order emails.

Background sends are best effort. This job picks up what they missed:
emails whose latest attempt failed, and confirmations that were never
attempted at all (process died between commit and dispatch).
"""
import asyncio
import logging
from datetime import timedelta
from typing import List, Tuple

from sqlalchemy import and_, or_
from sqlmodel import select

from storefront import database
from storefront.constants.order_status import OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.email import EmailKind, EmailLog, EmailStatus
from storefront.models.order import Order
from storefront.models.order_event import OrderEvent
from storefront.services.order_email_service import send_order_email
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)

LOOKBACK_DAYS = 3
CONFIRMATION_GRACE = timedelta(minutes=10)


async def find_failed_emails() -> List[Tuple[EmailKind, str]]:
    """(kind, order_id) pairs whose most recent delivery attempt failed."""
    cutoff = utcnow() - timedelta(days=LOOKBACK_DAYS)

    async with database.async_session() as session:
        logs = (
            await session.exec(
                select(EmailLog)
                .where(EmailLog.order_id.is_not(None))
                .where(EmailLog.created_at >= cutoff)
                .order_by(EmailLog.created_at, EmailLog.id)
            )
        ).all()

    latest = {}
    for log in logs:
        latest[(log.kind, log.order_id)] = log.status

    return [key for key, status in latest.items() if status == EmailStatus.FAILED]


async def find_unconfirmed_orders() -> List[str]:
    """Confirmable orders with no confirmation attempt on record.

    COD orders become confirmable when placed, online orders when the
    payment_paid event lands; the grace period runs from that moment so a
    webhook-triggered send still in flight is not doubled.
    """
    now = utcnow()
    settled_before = now - CONFIRMATION_GRACE
    attempted = (
        select(EmailLog.order_id)
        .where(EmailLog.kind == EmailKind.ORDER_CONFIRMATION)
        .where(EmailLog.order_id.is_not(None))
    )
    paid_before_grace = (
        select(OrderEvent.order_id)
        .where(OrderEvent.event_type == "payment_paid")
        .where(OrderEvent.created_at < settled_before)
    )

    async with database.async_session() as session:
        rows = await session.exec(
            select(Order.id)
            .where(Order.created_at >= now - timedelta(days=LOOKBACK_DAYS))
            .where(Order.status != OrderStatus.CANCELLED)
            .where(
                or_(
                    and_(
                        Order.payment_method == PaymentMethod.COD,
                        Order.created_at < settled_before,
                    ),
                    and_(
                        Order.payment_method != PaymentMethod.COD,
                        Order.payment_status == PaymentStatus.PAID,
                        Order.id.in_(paid_before_grace),
                    ),
                )
            )
            .where(Order.id.not_in(attempted))
        )
        return list(rows.all())


async def resend_failed_emails() -> int:
    pending = await find_failed_emails()
    pending += [
        (EmailKind.ORDER_CONFIRMATION, order_id)
        for order_id in await find_unconfirmed_orders()
    ]
    resent = 0

    for kind, order_id in pending:
        if await send_order_email(kind, order_id):
            resent += 1

    logger.info(f"Re-sent {resent} of {len(pending)} failed order emails")
    return resent


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    asyncio.run(resend_failed_emails())
