import logging
import random
import time
from typing import Optional, Tuple

from storefront.services.email_service import send_email

logger = logging.getLogger(__name__)


def send_email_with_retry(
    to_email: str,
    subject: str,
    html: str,
    max_retries: int = 3
) -> Tuple[bool, Optional[str]]:
    """Returns (sent, last_error). Blocking; run it off the event loop."""
    last_error = None

    for attempt in range(1, max_retries + 1):
        try:
            send_email(to=to_email, subject=subject, html=html)
            logger.info(f"Email sent to {to_email} (attempt {attempt})")
            return True, None

        except Exception as e:
            last_error = str(e)
            logger.warning(f"Attempt {attempt} failed: {last_error}")

            lowered = last_error.lower()
            if "api-key" in lowered or "invalid recipient" in lowered:
                break  # config or address error -> no retry

            if attempt < max_retries:
                time.sleep((2 ** attempt) + random.random())

    logger.error(f"Email permanently failed: {last_error}")
    return False, last_error
