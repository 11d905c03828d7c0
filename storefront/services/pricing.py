import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Tuple

from storefront.config import settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderTotals:
    subtotal: int
    shipping: int
    tax: int
    total: int


def shipping_for(subtotal: int) -> int:
    if subtotal >= settings.FREE_SHIPPING_THRESHOLD:
        return 0
    return settings.FLAT_SHIPPING_COST


def tax_for(subtotal: int) -> int:
    # integer round-half-up of subtotal * rate
    return (subtotal * settings.TAX_RATE_BPS + 5000) // 10000


def compute_totals(lines: Iterable[Tuple[int, int]]) -> OrderTotals:
    """Totals from (unit_price, quantity) pairs of authoritative prices."""
    subtotal = sum(price * quantity for price, quantity in lines)
    shipping = shipping_for(subtotal)
    tax = tax_for(subtotal)
    return OrderTotals(
        subtotal=subtotal,
        shipping=shipping,
        tax=tax,
        total=subtotal + shipping + tax,
    )


def log_client_mismatch(
    totals: OrderTotals,
    *,
    subtotal: Optional[int] = None,
    shipping: Optional[int] = None,
    tax: Optional[int] = None,
    total: Optional[int] = None,
) -> bool:
    """Compare client-submitted figures with ours; they are advisory only."""
    submitted = {"subtotal": subtotal, "shipping": shipping, "tax": tax, "total": total}
    mismatched = {
        name: (value, getattr(totals, name))
        for name, value in submitted.items()
        if value is not None and value != getattr(totals, name)
    }
    if mismatched:
        logger.warning(f"Client totals differ from server totals: {mismatched}")
    return bool(mismatched)
