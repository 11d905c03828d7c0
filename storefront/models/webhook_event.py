from datetime import datetime
from typing import Optional

from sqlmodel import Field, SQLModel

from storefront.utils.clock import UTCDateTime, utcnow


class ProcessedWebhookEvent(SQLModel, table=True):
    """Idempotency ledger: one row per provider event id ever applied."""

    __tablename__ = "processed_webhook_event"

    id: str = Field(primary_key=True)  # Stripe event id, evt_...
    event_type: str
    order_id: Optional[str] = Field(default=None, index=True)
    processed_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
