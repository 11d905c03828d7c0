import asyncio
import json
import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import List, Optional

import stripe

from storefront.config import settings
from storefront.services.errors import PaymentGatewayError, WebhookSignatureError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GatewayLineItem:
    name: str
    unit_amount: int  # paise
    quantity: int
    image: Optional[str] = None


@dataclass(frozen=True)
class CheckoutSession:
    session_id: str
    url: str


class StripeGateway:
    """Hosted Checkout sessions and webhook verification against Stripe."""

    def __init__(
        self,
        secret_key: Optional[str] = None,
        webhook_secret: Optional[str] = None,
        currency: Optional[str] = None,
        tolerance: Optional[int] = None,
    ):
        self.secret_key = secret_key if secret_key is not None else settings.STRIPE_SECRET_KEY
        self.webhook_secret = (
            webhook_secret if webhook_secret is not None else settings.STRIPE_WEBHOOK_SECRET
        )
        self.currency = currency or settings.STRIPE_CURRENCY
        self.tolerance = tolerance or settings.STRIPE_WEBHOOK_TOLERANCE
        stripe.api_key = self.secret_key

    def _session_params(
        self,
        *,
        order_id: str,
        order_number: str,
        total: int,
        customer_email: str,
        line_items: List[GatewayLineItem],
    ) -> dict:
        charged = sum(item.unit_amount * item.quantity for item in line_items)
        if charged != total:
            raise PaymentGatewayError(
                f"Line items for {order_number} add up to {charged}, expected {total}"
            )

        metadata = {"orderId": order_id, "orderNumber": order_number}

        return {
            "payment_method_types": ["card"],
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": self.currency,
                        "product_data": {
                            "name": item.name,
                            # Stripe only accepts absolute image URLs
                            **(
                                {"images": [item.image]}
                                if item.image and item.image.startswith("http")
                                else {}
                            ),
                        },
                        "unit_amount": item.unit_amount,
                    },
                    "quantity": item.quantity,
                }
                for item in line_items
            ],
            "success_url": (
                f"{settings.APP_URL}/order-confirmation/{order_id}"
                "?session_id={CHECKOUT_SESSION_ID}"
            ),
            "cancel_url": f"{settings.APP_URL}/checkout?cancelled=true",
            "customer_email": customer_email,
            "metadata": metadata,
            "payment_intent_data": {"metadata": metadata},
        }

    async def create_checkout_session(
        self,
        *,
        order_id: str,
        order_number: str,
        total: int,
        customer_email: str,
        line_items: List[GatewayLineItem],
    ) -> CheckoutSession:
        params = self._session_params(
            order_id=order_id,
            order_number=order_number,
            total=total,
            customer_email=customer_email,
            line_items=line_items,
        )

        try:
            session = await asyncio.to_thread(stripe.checkout.Session.create, **params)
        except stripe.StripeError as e:
            logger.error(f"Stripe session creation failed for {order_number}: {e}")
            raise PaymentGatewayError("Could not start online payment") from e

        logger.info(f"Created Stripe session {session.id} for order {order_number}")
        return CheckoutSession(session_id=session.id, url=session.url)

    def verify_webhook(self, payload: bytes, signature: Optional[str]) -> dict:
        """
        Check the Stripe-Signature header against the raw body and return
        the decoded event. Nothing in the payload is trusted before this.
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature header")

        if not self.webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET is not configured")
            raise WebhookSignatureError("Webhook secret not configured")

        try:
            body = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                body, signature, self.webhook_secret, self.tolerance
            )
            event = json.loads(body)
        except stripe.SignatureVerificationError as e:
            raise WebhookSignatureError(str(e)) from e
        except (UnicodeDecodeError, ValueError) as e:
            raise WebhookSignatureError("Malformed webhook payload") from e

        if not isinstance(event, dict) or "type" not in event or "id" not in event:
            raise WebhookSignatureError("Malformed webhook payload")

        return event


@lru_cache(maxsize=1)
def get_payment_gateway() -> StripeGateway:
    return StripeGateway()
