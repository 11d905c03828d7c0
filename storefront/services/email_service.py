import logging
import re

import requests

from storefront.config import settings

logger = logging.getLogger(__name__)

BREVO_API_URL = "https://api.brevo.com/v3/smtp/email"


class EmailDeliveryError(Exception):
    pass


def is_valid_email(email) -> bool:
    if not email:
        return False

    return re.match(r"[^@]+@[^@]+\.[^@]+", email) is not None


def send_email(to: str, subject: str, html: str) -> None:
    """
    Send one transactional email via Brevo.

    Raises EmailDeliveryError on any failure so the retry wrapper can decide
    whether another attempt makes sense.
    """
    if not is_valid_email(to):
        raise EmailDeliveryError(f"Invalid recipient: {to!r}")

    if not settings.BREVO_API_KEY:
        raise EmailDeliveryError("api-key not configured")

    payload = {
        "sender": {
            "email": settings.MAIL_FROM,
            "name": settings.STORE_NAME,
        },
        "to": [{"email": to}],
        "subject": subject,
        "htmlContent": html,
    }

    headers = {
        "api-key": settings.BREVO_API_KEY,
        "Content-Type": "application/json",
    }

    try:
        response = requests.post(
            BREVO_API_URL,
            json=payload,
            headers=headers,
            timeout=10,
        )
    except requests.RequestException as e:
        raise EmailDeliveryError(f"Brevo request failed: {e}") from e

    if response.status_code >= 400:
        raise EmailDeliveryError(
            f"Brevo email failed ({response.status_code}): {response.text}"
        )

    logger.info(f"Brevo email sent to {to}")
