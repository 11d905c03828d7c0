import logging

from storefront.constants.order_status import PaymentMethod
from storefront.models.order import Order
from storefront.models.order_item import OrderItem
from storefront.services.inventory_service import (
    StockResult,
    decrement_stock,
    get_product,
    increment_stock,
    restore_order_stock,
)


async def test_decrement_takes_stock(session, make_product, stock_of):
    product = await make_product(stock=5)

    async with session.begin():
        result = await decrement_stock(session, product.id, 2)

    assert result is StockResult.OK
    assert await stock_of(product.id) == 3


async def test_decrement_refuses_more_than_available(session, make_product, stock_of):
    product = await make_product(stock=1)

    async with session.begin():
        result = await decrement_stock(session, product.id, 2)

    assert result is StockResult.INSUFFICIENT
    assert await stock_of(product.id) == 1


async def test_decrement_unknown_product(session):
    async with session.begin():
        result = await decrement_stock(session, "no-such-product", 1)

    assert result is StockResult.INSUFFICIENT


async def test_stock_never_goes_negative(session, make_product, stock_of):
    product = await make_product(stock=3)

    results = []
    for _ in range(5):
        async with session.begin():
            results.append(await decrement_stock(session, product.id, 1))

    assert results.count(StockResult.OK) == 3
    assert results.count(StockResult.INSUFFICIENT) == 2
    assert await stock_of(product.id) == 0


async def test_get_product_sees_committed_changes(session, make_product):
    product = await make_product(stock=4)

    async with session.begin():
        assert (await get_product(session, product.id)).stock == 4
        await decrement_stock(session, product.id, 3)
        # same session, but the row is re-read rather than served stale
        assert (await get_product(session, product.id)).stock == 1


async def test_increment_missing_product_only_warns(session, caplog):
    with caplog.at_level(logging.WARNING):
        async with session.begin():
            result = await increment_stock(session, "deleted-product", 2)

    assert result is StockResult.OK
    assert "Cannot restock missing product" in caplog.text


async def test_restore_order_stock_returns_every_unit(session, make_product, stock_of):
    kurta = await make_product(stock=0)
    dupatta = await make_product(name="Silk Dupatta", price=1299, stock=1)

    order = Order(
        order_number="BAB-20260101-10001",
        customer_name="Asha Verma",
        customer_email="asha@example.com",
        shipping_address_line1="12 MG Road",
        shipping_city="Bengaluru",
        shipping_state="Karnataka",
        shipping_postal_code="560001",
        shipping_country="India",
        billing_address_line1="12 MG Road",
        billing_city="Bengaluru",
        billing_state="Karnataka",
        billing_postal_code="560001",
        billing_country="India",
        subtotal=2499 * 2 + 1299,
        shipping_cost=5000,
        tax=1133,
        total=2499 * 2 + 1299 + 5000 + 1133,
        payment_method=PaymentMethod.CARD,
    )

    async with session.begin():
        session.add(order)
        await session.flush()
        for product, quantity in ((kurta, 2), (dupatta, 1)):
            session.add(
                OrderItem(
                    order_id=order.id,
                    product_id=product.id,
                    product_name=product.name,
                    product_slug=product.slug,
                    price=product.price,
                    quantity=quantity,
                )
            )

    async with session.begin():
        restored = await restore_order_stock(session, order.id)

    assert restored == 3
    assert await stock_of(kurta.id) == 2
    assert await stock_of(dupatta.id) == 2
