import asyncio
import logging

from storefront import database
from storefront.config import settings
from storefront.models.email import EmailKind, EmailLog, EmailStatus
from storefront.services.email_retry import send_email_with_retry
from storefront.services.order_repository import get_order, get_order_items
from storefront.utils.template import render_template

logger = logging.getLogger(__name__)

EMAILS = {
    EmailKind.ORDER_CONFIRMATION: (
        "user_emails/order_confirmation.html",
        "Order Confirmation - {order_number}",
    ),
    EmailKind.ORDER_SHIPPED: (
        "user_emails/order_shipped.html",
        "Your Order Has Been Shipped - {order_number}",
    ),
    EmailKind.ORDER_DELIVERED: (
        "user_emails/order_delivered.html",
        "Your Order Has Been Delivered - {order_number}",
    ),
}


async def send_order_email(kind: EmailKind, order_id: str) -> bool:
    """
    Render and send one order email from a fresh snapshot of the order.
    - every outcome lands in EmailLog (failed rows get re-sent by the job)
    - NEVER raises: order and payment flows must not fail on email
    """
    template, subject_format = EMAILS[kind]

    try:
        async with database.async_session() as session:
            order = await get_order(session, order_id)
            if order is None:
                logger.warning(f"Order {order_id} not found, skipping {kind.value} email")
                return False

            items = await get_order_items(session, order_id)
            subject = subject_format.format(order_number=order.order_number)
            html = render_template(
                template,
                order=order,
                items=items,
                store_name=settings.STORE_NAME,
                app_url=settings.APP_URL,
            )

            sent, error = await asyncio.to_thread(
                send_email_with_retry,
                to_email=order.customer_email,
                subject=subject,
                html=html,
                max_retries=settings.EMAIL_MAX_RETRIES,
            )

            session.add(
                EmailLog(
                    kind=kind,
                    order_id=order.id,
                    to_email=order.customer_email,
                    subject=subject,
                    status=EmailStatus.SENT if sent else EmailStatus.FAILED,
                    error=error,
                )
            )
            await session.commit()
            return sent

    except Exception:
        logger.exception(f"{kind.value} email failed for order {order_id}")
        return False


async def send_order_confirmation(order_id: str) -> bool:
    return await send_order_email(EmailKind.ORDER_CONFIRMATION, order_id)


async def send_order_shipped(order_id: str) -> bool:
    return await send_order_email(EmailKind.ORDER_SHIPPED, order_id)


async def send_order_delivered(order_id: str) -> bool:
    return await send_order_email(EmailKind.ORDER_DELIVERED, order_id)
