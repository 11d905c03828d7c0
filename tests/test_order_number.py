import random
from datetime import date

import pytest

from storefront.services import order_number
from storefront.services.errors import OrderNumberExhausted
from storefront.services.order_number import (
    ORDER_NUMBER_PATTERN,
    build_order_number,
    generate_order_number,
)


def test_order_number_format():
    number = build_order_number("BAB", today=date(2026, 3, 7), rng=random.Random(7))

    assert ORDER_NUMBER_PATTERN.match(number)
    assert number.startswith("BAB-20260307-")
    assert 10000 <= int(number.rsplit("-", 1)[1]) <= 99999


def test_wide_suffix_has_eight_digits():
    number = build_order_number("BAB", today=date(2026, 3, 7), digits=8, rng=random.Random(7))

    suffix = number.rsplit("-", 1)[1]
    assert len(suffix) == 8
    assert not ORDER_NUMBER_PATTERN.match(number)


async def test_generate_returns_first_free_number(session, monkeypatch):
    seen = []

    async def fake_exists(session, candidate):
        seen.append(candidate)
        return len(seen) < 3  # first two are taken

    monkeypatch.setattr(order_number, "order_number_exists", fake_exists)

    number = await generate_order_number(session, prefix="BAB", max_attempts=5)

    assert number == seen[-1]
    assert len(seen) == 3
    assert ORDER_NUMBER_PATTERN.match(number)


async def test_generate_widens_suffix_after_repeated_collisions(session, monkeypatch):
    async def fake_exists(session, candidate):
        return len(candidate.rsplit("-", 1)[1]) == 5

    monkeypatch.setattr(order_number, "order_number_exists", fake_exists)

    number = await generate_order_number(session, prefix="BAB", max_attempts=3)

    assert len(number.rsplit("-", 1)[1]) == 8


async def test_generate_gives_up_when_everything_collides(session, monkeypatch):
    calls = []

    async def always_taken(session, candidate):
        calls.append(candidate)
        return True

    monkeypatch.setattr(order_number, "order_number_exists", always_taken)

    with pytest.raises(OrderNumberExhausted):
        await generate_order_number(session, prefix="BAB", max_attempts=4)

    # both suffix widths were tried the full number of times
    assert len(calls) == 8


async def test_uses_configured_prefix(session):
    number = await generate_order_number(session)

    assert number.startswith("BAB-")
