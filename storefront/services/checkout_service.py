"""Checkout orchestration: cart -> stock-reserved order -> payment hand-off.

One transaction validates every line against live catalog state, creates
the order with item snapshots and takes the stock. COD orders are final at
that point; online orders then get a hosted Stripe Checkout session and
wait for the webhook.
"""
import logging
from dataclasses import dataclass
from typing import List, Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.config import settings
from storefront.constants.order_status import OrderStatus, PaymentMethod, PaymentStatus
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.schemas.checkout_schemas import CheckoutRequest
from storefront.services.errors import (
    CheckoutRetriesExhausted,
    DuplicateOrderNumber,
    InvalidCheckoutRequest,
    InventoryConflict,
    PaymentGatewayError,
)
from storefront.services.inventory_service import (
    StockResult,
    decrement_stock,
    get_product,
    restore_order_stock,
)
from storefront.services.order_number import generate_order_number
from storefront.services.order_repository import (
    create_order_with_items,
    get_order,
    log_order_event,
    update_order,
)
from storefront.services.payment_gateway import CheckoutSession, GatewayLineItem
from storefront.services.pricing import compute_totals, log_client_mismatch

logger = logging.getLogger(__name__)


@dataclass
class CheckoutResult:
    order: Order
    items: List[OrderItem]
    payment_session: Optional[CheckoutSession] = None
    send_confirmation: bool = False


def validate_checkout_request(request: CheckoutRequest) -> None:
    """Client input checks that run before any transaction is opened."""
    if not request.items:
        raise InvalidCheckoutRequest("items", "Cart is empty")

    address = request.shipping_address
    if not address.full_name.strip():
        raise InvalidCheckoutRequest("shipping_address.full_name", "Full name is required")

    for field in ("address_line1", "city", "state", "postal_code", "country"):
        if not getattr(address, field).strip():
            raise InvalidCheckoutRequest(
                f"shipping_address.{field}",
                f"Shipping address {field.replace('_', ' ')} is required",
            )


async def _reserve_order(session: AsyncSession, request: CheckoutRequest) -> CheckoutResult:
    """Body of the checkout transaction. Any raise rolls everything back."""
    snapshots = []

    # 1. re-check every line against the authoritative product
    for line in request.items:
        product = await get_product(session, line.product_id)

        if product is None or not product.is_active:
            raise InventoryConflict(
                line.name,
                InventoryConflict.UNAVAILABLE,
                f"Product {line.name} is no longer available",
            )

        if product.stock < line.quantity:
            raise InventoryConflict(
                line.name,
                InventoryConflict.INSUFFICIENT_STOCK,
                f"Insufficient stock for {line.name}. Only {product.stock} available",
            )

        if product.price != line.price:
            raise InventoryConflict(
                line.name,
                InventoryConflict.PRICE_CHANGED,
                f"Price has changed for {line.name}. Please refresh and try again",
            )

        snapshots.append(
            OrderItem(
                product_id=product.id,
                product_name=product.name,
                product_slug=product.slug,
                product_image=product.image,
                price=product.price,
                quantity=line.quantity,
            )
        )

    totals = compute_totals((item.price, item.quantity) for item in snapshots)
    log_client_mismatch(
        totals,
        subtotal=request.subtotal,
        shipping=request.shipping,
        tax=request.tax,
        total=request.total,
    )

    # 2. order row + item snapshots
    address = request.shipping_address
    order = Order(
        order_number=await generate_order_number(session),
        customer_name=address.full_name.strip(),
        customer_email=str(address.email).lower(),
        customer_phone=address.phone,

        shipping_address_line1=address.address_line1,
        shipping_address_line2=address.address_line2 or None,
        shipping_city=address.city,
        shipping_state=address.state,
        shipping_postal_code=address.postal_code,
        shipping_country=address.country,

        billing_address_line1=address.address_line1,
        billing_address_line2=address.address_line2 or None,
        billing_city=address.city,
        billing_state=address.state,
        billing_postal_code=address.postal_code,
        billing_country=address.country,

        subtotal=totals.subtotal,
        shipping_cost=totals.shipping,
        tax=totals.tax,
        total=totals.total,

        payment_method=request.payment_method,
        status=OrderStatus.PENDING,
        payment_status=PaymentStatus.PENDING,
    )
    await create_order_with_items(session, order, snapshots)

    # 3. take the stock; the guarded decrement is the real oversell check
    for item in snapshots:
        result = await decrement_stock(session, item.product_id, item.quantity)
        if result is not StockResult.OK:
            raise InventoryConflict(
                item.product_name,
                InventoryConflict.INSUFFICIENT_STOCK,
                f"Insufficient stock for {item.product_name}",
            )

    log_order_event(
        session,
        order.id,
        "order_placed",
        f"Order {order.order_number} placed ({order.payment_method.value})",
        meta={"total": order.total, "items": len(snapshots)},
    )

    return CheckoutResult(order=order, items=snapshots)


async def place_order(session: AsyncSession, request: CheckoutRequest) -> CheckoutResult:
    """Run the reservation transaction, retrying on order-number clashes.

    Each attempt re-reads products from scratch; nothing from a rolled back
    attempt is reused. A rollback expires every instance held by ``session``,
    so callers should not read objects loaded earlier on the same session
    after this returns; give each checkout its own session.
    """
    validate_checkout_request(request)

    max_attempts = settings.ORDER_CREATE_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        try:
            async with session.begin():
                result = await _reserve_order(session, request)
        except DuplicateOrderNumber as e:
            logger.warning(f"{e} (attempt {attempt}/{max_attempts}), retrying checkout")
            continue

        order = result.order
        logger.info(
            f"Order {order.order_number} created: total {order.total}, "
            f"{sum(i.quantity for i in result.items)} units reserved"
        )
        return result

    raise CheckoutRetriesExhausted(
        "Could not create your order right now. Please try again."
    )


def _gateway_line_items(result: CheckoutResult) -> List[GatewayLineItem]:
    order = result.order
    line_items = [
        GatewayLineItem(
            name=item.product_name,
            unit_amount=item.price,
            quantity=item.quantity,
            image=item.product_image,
        )
        for item in result.items
    ]
    if order.shipping_cost:
        line_items.append(GatewayLineItem(name="Shipping", unit_amount=order.shipping_cost, quantity=1))
    if order.tax:
        line_items.append(GatewayLineItem(name="Tax (GST)", unit_amount=order.tax, quantity=1))
    return line_items


async def _release_unpaid_order(session: AsyncSession, order_id: str) -> None:
    """Undo the reservation of an online order whose payment never started."""
    async with session.begin():
        order = await get_order(session, order_id, for_update=True)
        if order is None or order.payment_status != PaymentStatus.PENDING:
            return

        await update_order(session, order.id, payment_status=PaymentStatus.FAILED)
        await restore_order_stock(session, order.id)
        log_order_event(
            session, order.id, "payment_failed", "Payment session could not be created"
        )


async def checkout(
    session: AsyncSession,
    request: CheckoutRequest,
    gateway=None,
) -> CheckoutResult:
    """Create the order, then finish it according to the payment method."""
    if request.payment_method.is_online and gateway is None:
        raise PaymentGatewayError("No payment gateway configured for online checkout")

    result = await place_order(session, request)
    order = result.order

    if request.payment_method == PaymentMethod.COD:
        # settled in cash on delivery; confirm straight away
        result.send_confirmation = True
        return result

    try:
        payment_session = await gateway.create_checkout_session(
            order_id=order.id,
            order_number=order.order_number,
            total=order.total,
            customer_email=order.customer_email,
            line_items=_gateway_line_items(result),
        )
    except PaymentGatewayError:
        logger.warning(f"Releasing stock for {order.order_number}: payment session failed")
        await _release_unpaid_order(session, order.id)
        raise

    async with session.begin():
        result.order = await update_order(
            session, order.id, stripe_session_id=payment_session.session_id
        )

    result.payment_session = payment_session
    return result
