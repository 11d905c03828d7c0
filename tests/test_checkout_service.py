import asyncio
from datetime import timedelta

import pytest
from sqlalchemy import func
from sqlmodel import select

from storefront.constants.order_status import OrderStatus, PaymentMethod, PaymentStatus
from storefront.database import async_session
from storefront.models.order import Order
from storefront.models.order_event import OrderEvent
from storefront.services import checkout_service
from storefront.services.checkout_service import checkout, place_order
from storefront.services.errors import (
    CheckoutRetriesExhausted,
    InvalidCheckoutRequest,
    InventoryConflict,
    PaymentGatewayError,
)
from storefront.services.inventory_service import StockResult
from storefront.services.order_number import ORDER_NUMBER_PATTERN
from storefront.services.order_repository import get_order_items


async def count_orders():
    async with async_session() as s:
        return (await s.exec(select(func.count()).select_from(Order))).one()


async def test_cod_order_reserves_stock(session, make_product, stock_of, checkout_request):
    product = await make_product(price=2499, stock=5)

    result = await checkout(session, checkout_request((product, 2)))
    order = result.order

    assert result.send_confirmation is True
    assert result.payment_session is None
    assert ORDER_NUMBER_PATTERN.match(order.order_number)
    assert order.status == OrderStatus.PENDING
    assert order.payment_status == PaymentStatus.PENDING
    assert order.payment_method == PaymentMethod.COD
    assert order.subtotal == 4998
    assert order.shipping_cost == 5000
    assert order.tax == 900
    assert order.total == order.subtotal + order.shipping_cost + order.tax
    assert await stock_of(product.id) == 3


async def test_order_snapshots_catalog_data(session, make_product, checkout_request):
    product = await make_product(name="Handloom Cotton Kurta", price=2499, stock=5)
    request = checkout_request((product, 2))
    request.items[0].name = "Renamed in the browser"

    result = await checkout(session, request)

    async with async_session() as s:
        items = await get_order_items(s, result.order.id)

    assert len(items) == 1
    assert items[0].product_id == product.id
    assert items[0].product_name == "Handloom Cotton Kurta"
    assert items[0].price == 2499
    assert items[0].quantity == 2


async def test_customer_and_address_are_copied(session, make_product, checkout_request):
    product = await make_product()

    result = await checkout(session, checkout_request((product, 1), email="Asha@Example.com"))
    order = result.order

    assert order.customer_email == "asha@example.com"
    assert order.customer_name == "Asha Verma"
    assert order.shipping_city == "Bengaluru"
    assert order.billing_address_line1 == order.shipping_address_line1
    assert order.billing_postal_code == "560001"


async def test_order_placed_event_is_logged(session, make_product, checkout_request):
    product = await make_product()

    result = await checkout(session, checkout_request((product, 1)))

    async with async_session() as s:
        events = (
            await s.exec(select(OrderEvent).where(OrderEvent.order_id == result.order.id))
        ).all()
    assert [e.event_type for e in events] == ["order_placed"]


async def test_insufficient_stock_creates_nothing(session, make_product, stock_of, checkout_request):
    product = await make_product(name="Handloom Cotton Kurta", stock=1)

    with pytest.raises(InventoryConflict) as exc:
        await checkout(session, checkout_request((product, 2)))

    assert exc.value.reason == InventoryConflict.INSUFFICIENT_STOCK
    assert str(exc.value) == "Insufficient stock for Handloom Cotton Kurta. Only 1 available"
    assert await count_orders() == 0
    assert await stock_of(product.id) == 1


async def test_inactive_product_is_unavailable(session, make_product, checkout_request):
    product = await make_product(name="Old Stock Saree", is_active=False)

    with pytest.raises(InventoryConflict) as exc:
        await checkout(session, checkout_request((product, 1)))

    assert exc.value.reason == InventoryConflict.UNAVAILABLE
    assert str(exc.value) == "Product Old Stock Saree is no longer available"


async def test_deleted_product_is_unavailable(session, make_product, checkout_request):
    product = await make_product()
    request = checkout_request((product, 1))
    request.items[0].product_id = "gone"

    with pytest.raises(InventoryConflict) as exc:
        await checkout(session, request)

    assert exc.value.reason == InventoryConflict.UNAVAILABLE


async def test_changed_price_is_rejected(session, make_product, stock_of, checkout_request):
    product = await make_product(name="Handloom Cotton Kurta", price=2499, stock=5)
    request = checkout_request((product, 1))
    request.items[0].price = 1999

    with pytest.raises(InventoryConflict) as exc:
        await checkout(session, request)

    assert exc.value.reason == InventoryConflict.PRICE_CHANGED
    assert "Please refresh and try again" in str(exc.value)
    assert await stock_of(product.id) == 5


async def test_empty_cart_is_rejected(session, checkout_request):
    with pytest.raises(InvalidCheckoutRequest) as exc:
        await checkout(session, checkout_request())

    assert exc.value.field == "items"
    assert str(exc.value) == "Cart is empty"


async def test_blank_address_is_rejected(session, make_product, checkout_request):
    product = await make_product()
    request = checkout_request((product, 1))
    request.shipping_address.city = "  "

    with pytest.raises(InvalidCheckoutRequest) as exc:
        await checkout(session, request)

    assert exc.value.field == "shipping_address.city"


async def test_failed_line_rolls_back_earlier_lines(
    session, make_product, stock_of, checkout_request, monkeypatch
):
    kurta = await make_product(stock=5)
    dupatta = await make_product(name="Silk Dupatta", price=1299, stock=5)

    real_decrement = checkout_service.decrement_stock

    async def racing_decrement(session, product_id, quantity):
        # another buyer took the last dupatta between check and update
        if product_id == dupatta.id:
            return StockResult.INSUFFICIENT
        return await real_decrement(session, product_id, quantity)

    monkeypatch.setattr(checkout_service, "decrement_stock", racing_decrement)

    with pytest.raises(InventoryConflict):
        await checkout(session, checkout_request((kurta, 2), (dupatta, 1)))

    assert await stock_of(kurta.id) == 5
    assert await stock_of(dupatta.id) == 5
    assert await count_orders() == 0


async def test_duplicate_order_number_retries_transaction(
    make_product, stock_of, checkout_request, monkeypatch
):
    product = await make_product(stock=5)
    numbers = iter(["BAB-20260101-11111", "BAB-20260101-11111", "BAB-20260101-22222"])

    async def fixed_numbers(session, **kwargs):
        return next(numbers)

    monkeypatch.setattr(checkout_service, "generate_order_number", fixed_numbers)

    # one session per buyer, as each request gets its own
    async with async_session() as s:
        first = (await place_order(s, checkout_request((product, 1)))).order.order_number
    async with async_session() as s:
        second = (await place_order(s, checkout_request((product, 1)))).order.order_number

    assert first == "BAB-20260101-11111"
    assert second == "BAB-20260101-22222"
    # the rolled back attempt did not keep its stock
    assert await stock_of(product.id) == 3
    assert await count_orders() == 2


async def test_retries_are_bounded(session, make_product, stock_of, checkout_request, monkeypatch):
    product = await make_product(stock=5)

    async def same_number(session, **kwargs):
        return "BAB-20260101-11111"

    monkeypatch.setattr(checkout_service, "generate_order_number", same_number)
    await place_order(session, checkout_request((product, 1)))

    with pytest.raises(CheckoutRetriesExhausted):
        await place_order(session, checkout_request((product, 1)))

    assert await stock_of(product.id) == 4
    assert await count_orders() == 1


async def test_order_numbers_are_unique(session, make_product, checkout_request):
    product = await make_product(stock=20)

    numbers = set()
    for _ in range(10):
        result = await checkout(session, checkout_request((product, 1)))
        numbers.add(result.order.order_number)

    assert len(numbers) == 10


async def test_sequential_buyers_cannot_oversell(session, make_product, stock_of, checkout_request):
    product = await make_product(stock=3)

    placed, rejected = 0, 0
    for _ in range(5):
        try:
            await checkout(session, checkout_request((product, 1)))
            placed += 1
        except InventoryConflict:
            rejected += 1

    assert (placed, rejected) == (3, 2)
    assert await stock_of(product.id) == 0


async def test_online_checkout_opens_payment_session(
    session, make_product, stock_of, checkout_request, gateway
):
    product = await make_product(price=2499, stock=5)

    result = await checkout(
        session, checkout_request((product, 2), payment_method="card"), gateway=gateway
    )
    order = result.order

    assert result.send_confirmation is False
    assert result.payment_session.session_id == "cs_test_1"
    assert order.stripe_session_id == "cs_test_1"
    assert order.payment_status == PaymentStatus.PENDING
    assert order.payment_method == PaymentMethod.CARD
    assert await stock_of(product.id) == 3

    call = gateway.sessions[0]
    assert call["order_id"] == order.id
    assert call["order_number"] == order.order_number
    assert call["total"] == order.total
    charged = sum(item.unit_amount * item.quantity for item in call["line_items"])
    assert charged == order.total
    assert [item.name for item in call["line_items"]][1:] == ["Shipping", "Tax (GST)"]


async def test_gateway_failure_releases_stock(
    session, make_product, stock_of, checkout_request, gateway
):
    product = await make_product(stock=5)
    gateway.fail = True

    with pytest.raises(PaymentGatewayError):
        await checkout(session, checkout_request((product, 2), payment_method="UPI"), gateway=gateway)

    assert await stock_of(product.id) == 5

    async with async_session() as s:
        order = (await s.exec(select(Order))).one()
    assert order.payment_status == PaymentStatus.FAILED
    assert order.status == OrderStatus.PENDING


async def test_online_checkout_needs_a_gateway(session, make_product, checkout_request, stock_of):
    product = await make_product(stock=5)

    with pytest.raises(PaymentGatewayError):
        await checkout(session, checkout_request((product, 1), payment_method="CARD"))

    assert await stock_of(product.id) == 5
    assert await count_orders() == 0


async def test_timestamps_are_stored_as_utc(session, make_product, checkout_request, load_order):
    product = await make_product()

    result = await checkout(session, checkout_request((product, 1)))
    saved = await load_order(result.order.id)

    assert saved.created_at.tzinfo is not None
    assert saved.created_at.utcoffset() == timedelta(0)
    assert saved.created_at == result.order.created_at


async def test_concurrent_buyers_cannot_oversell(make_product, stock_of, checkout_request):
    product = await make_product(stock=3)

    async def buy():
        async with async_session() as s:
            return await checkout(s, checkout_request((product, 1)))

    outcomes = await asyncio.gather(*(buy() for _ in range(8)), return_exceptions=True)

    placed = [o for o in outcomes if not isinstance(o, BaseException)]
    rejected = [o for o in outcomes if isinstance(o, BaseException)]
    assert len(placed) == 3
    assert all(isinstance(e, InventoryConflict) for e in rejected)
    assert await stock_of(product.id) == 0
    assert await count_orders() == 3
