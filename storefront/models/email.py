from datetime import datetime
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel

from storefront.utils.clock import UTCDateTime, utcnow


class EmailKind(str, Enum):
    ORDER_CONFIRMATION = "order_confirmation"
    ORDER_SHIPPED = "order_shipped"
    ORDER_DELIVERED = "order_delivered"


class EmailStatus(str, Enum):
    SENT = "sent"
    FAILED = "failed"


class EmailLog(SQLModel, table=True):
    __tablename__ = "email_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    kind: EmailKind = Field(index=True)
    order_id: Optional[str] = Field(default=None, index=True)
    to_email: str
    subject: str
    status: EmailStatus
    error: Optional[str] = None
    created_at: datetime = Field(default_factory=utcnow, sa_type=UTCDateTime)
