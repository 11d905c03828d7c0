import hashlib
import hmac
import os
import tempfile
import time
from uuid import uuid4

import pytest

# Settings are read at import time, so the environment goes first
_DB_DIR = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{os.path.join(_DB_DIR, 'test.db')}"
os.environ["ENV"] = "test"
os.environ["STRIPE_SECRET_KEY"] = "sk_test_dummy"
os.environ["STRIPE_WEBHOOK_SECRET"] = "whsec_test_secret"
os.environ["BREVO_API_KEY"] = ""
os.environ["secret_key"] = "test-secret-key"

from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlmodel import SQLModel  # noqa: E402

from storefront import models  # noqa: E402,F401
from storefront.database import async_session, engine  # noqa: E402
from storefront.main import app  # noqa: E402
from storefront.models.order import Order  # noqa: E402
from storefront.models.product import Product  # noqa: E402
from storefront.schemas.checkout_schemas import CheckoutRequest  # noqa: E402
from storefront.services import order_email_service  # noqa: E402
from storefront.services.errors import PaymentGatewayError  # noqa: E402
from storefront.services.payment_gateway import (  # noqa: E402
    CheckoutSession,
    StripeGateway,
    get_payment_gateway,
)

WEBHOOK_SECRET = "whsec_test_secret"


class FakeGateway(StripeGateway):
    """Real webhook verification, recorded (or failing) session creation."""

    def __init__(self):
        super().__init__(secret_key="sk_test_dummy", webhook_secret=WEBHOOK_SECRET)
        self.sessions = []
        self.fail = False

    async def create_checkout_session(self, **kwargs):
        self.sessions.append(kwargs)
        if self.fail:
            raise PaymentGatewayError("Could not start online payment")

        session_id = f"cs_test_{len(self.sessions)}"
        return CheckoutSession(
            session_id=session_id,
            url=f"https://checkout.stripe.com/c/pay/{session_id}",
        )


@pytest.fixture(autouse=True)
async def database():
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
        await conn.run_sync(SQLModel.metadata.create_all)
    yield
    # connections belong to this test's event loop
    await engine.dispose()


@pytest.fixture(autouse=True)
def mailer(monkeypatch):
    """Captures outgoing order emails instead of calling Brevo."""
    sent = []

    def fake_send(to_email, subject, html, max_retries=3):
        sent.append({"to": to_email, "subject": subject, "html": html})
        return True, None

    monkeypatch.setattr(order_email_service, "send_email_with_retry", fake_send)
    return sent


@pytest.fixture
async def session():
    async with async_session() as s:
        yield s


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
async def client(gateway):
    app.dependency_overrides[get_payment_gateway] = lambda: gateway
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def make_product():
    async def _make(**overrides):
        data = {
            "name": "Handloom Cotton Kurta",
            "slug": f"handloom-cotton-kurta-{uuid4().hex[:8]}",
            "image": "https://cdn.example.com/kurta.jpg",
            "price": 2499,
            "stock": 5,
        }
        data.update(overrides)
        product = Product(**data)
        async with async_session() as s:
            s.add(product)
            await s.commit()
        return product

    return _make


@pytest.fixture
def stock_of():
    async def _stock(product_id):
        async with async_session() as s:
            product = await s.get(Product, product_id)
            return product.stock

    return _stock


@pytest.fixture
def load_order():
    async def _load(order_id):
        async with async_session() as s:
            return await s.get(Order, order_id)

    return _load


@pytest.fixture
def cart_payload():
    """JSON body for /orders/create and /checkout."""

    def _payload(*lines, payment_method="COD", email="asha@example.com"):
        return {
            "items": [
                {
                    "product_id": product.id,
                    "name": product.name,
                    "slug": product.slug,
                    "image": product.image,
                    "price": product.price,
                    "quantity": quantity,
                }
                for product, quantity in lines
            ],
            "shipping_address": {
                "full_name": "Asha Verma",
                "email": email,
                "phone": "+91 98765 43210",
                "address_line1": "12 MG Road",
                "address_line2": "Flat 4B",
                "city": "Bengaluru",
                "state": "Karnataka",
                "postal_code": "560001",
                "country": "India",
            },
            "payment_method": payment_method,
        }

    return _payload


@pytest.fixture
def checkout_request(cart_payload):
    def _request(*lines, **kwargs):
        return CheckoutRequest(**cart_payload(*lines, **kwargs))

    return _request


@pytest.fixture
def sign():
    """Stripe-Signature header for a raw payload, as Stripe computes it."""

    def _sign(payload: str, secret: str = WEBHOOK_SECRET, timestamp=None):
        timestamp = int(time.time()) if timestamp is None else timestamp
        signed = f"{timestamp}.{payload}".encode("utf-8")
        signature = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
        return f"t={timestamp},v1={signature}"

    return _sign


@pytest.fixture
def stripe_event():
    def _event(event_type, order_id=None, *, event_id=None, **fields):
        is_intent = event_type.startswith("payment_intent.")
        obj = {
            "object": "payment_intent" if is_intent else "checkout.session",
            "id": "pi_test_123" if is_intent else "cs_test_1",
            "metadata": {"orderId": order_id} if order_id else {},
        }
        if not is_intent:
            obj["payment_intent"] = "pi_test_123"
            obj["payment_status"] = "paid"
        obj.update(fields)

        return {
            "id": event_id or f"evt_{uuid4().hex}",
            "object": "event",
            "type": event_type,
            "data": {"object": obj},
        }

    return _event
