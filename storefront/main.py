import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from storefront.config import settings
from storefront.database import create_db_and_tables, engine
from storefront.routes import admin_orders, checkout, health, orders, webhooks

logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Run DB creation ONLY in local; everything else goes through alembic
    if settings.ENV == "local":
        await create_db_and_tables()
    yield
    await engine.dispose()

app = FastAPI(title="Storefront Orders API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(checkout.router, tags=["Checkout"])
app.include_router(orders.router, prefix="/orders", tags=["Orders"])
app.include_router(webhooks.router, prefix="/webhooks", tags=["Webhooks"])
app.include_router(admin_orders.router, prefix="/admin/orders", tags=["Admin Orders"])
app.include_router(health.router, prefix="/health", tags=["Health"])


@app.get("/")
def root():
    return {
        "checkout_endpoints": [
            "/orders/create", "/checkout"
        ],
        "order_endpoints": [
            "/orders/{order_id}", "/orders/track"
        ],
        "webhook_endpoints": [
            "/webhooks/stripe"
        ],
        "admin_order_endpoints": [
            "/admin/orders", "/admin/orders/{order_id}",
            "/admin/orders/{order_id}/events"
        ],
    }
