import logging

from fastapi import BackgroundTasks

from storefront.notifications.events import OrderNotification
from storefront.services import order_email_service

logger = logging.getLogger(__name__)

SENDERS = {
    OrderNotification.ORDER_CONFIRMED: "send_order_confirmation",
    OrderNotification.ORDER_SHIPPED: "send_order_shipped",
    OrderNotification.ORDER_DELIVERED: "send_order_delivered",
}


def dispatch_order_event(
    background_tasks: BackgroundTasks,
    event: OrderNotification,
    order_id: str,
) -> None:
    """
    Queue the customer email for an order event.

    Runs after the response is sent, so a slow or failing mail provider
    never affects checkout or webhook acknowledgement.
    """
    sender = getattr(order_email_service, SENDERS[event])
    logger.info(f"Queued {event.value} notification for order {order_id}")
    background_tasks.add_task(sender, order_id)
