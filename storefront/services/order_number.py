"""Human-facing order numbers of the form PREFIX-YYYYMMDD-NNNNN."""
import logging
import random
import re
from datetime import date
from typing import Optional

from sqlmodel.ext.asyncio.session import AsyncSession

from storefront.config import settings
from storefront.services.errors import OrderNumberExhausted
from storefront.services.order_repository import order_number_exists
from storefront.utils.clock import utcnow

logger = logging.getLogger(__name__)

SUFFIX_DIGITS = 5
FALLBACK_SUFFIX_DIGITS = 8

ORDER_NUMBER_PATTERN = re.compile(r"^[A-Z0-9]+-\d{8}-\d{5}$")


def build_order_number(
    prefix: str,
    *,
    today: Optional[date] = None,
    digits: int = SUFFIX_DIGITS,
    rng=random,
) -> str:
    today = today or utcnow().date()
    low = 10 ** (digits - 1)
    high = 10 ** digits - 1
    return f"{prefix}-{today:%Y%m%d}-{rng.randint(low, high)}"


async def generate_order_number(
    session: AsyncSession,
    *,
    prefix: Optional[str] = None,
    max_attempts: Optional[int] = None,
    rng=random,
) -> str:
    """Draw candidates until one is not taken.

    After `max_attempts` collisions on the 5-digit suffix the suffix widens
    to 8 digits. The unique index on `order_number` remains the final guard
    against two callers picking the same free number at once.
    """
    prefix = prefix or settings.ORDER_NUMBER_PREFIX
    max_attempts = max_attempts or settings.ORDER_NUMBER_MAX_ATTEMPTS

    for digits in (SUFFIX_DIGITS, FALLBACK_SUFFIX_DIGITS):
        for _ in range(max_attempts):
            candidate = build_order_number(prefix, digits=digits, rng=rng)
            if not await order_number_exists(session, candidate):
                return candidate
            logger.warning(f"Order number collision on {candidate}, regenerating")

        logger.warning(
            f"{max_attempts} collisions with a {digits}-digit suffix, widening"
        )

    raise OrderNumberExhausted("Could not allocate a unique order number")
