from datetime import datetime, timezone

from sqlalchemy import DateTime
from sqlalchemy.types import TypeDecorator


def utcnow() -> datetime:
    """Timezone-aware UTC timestamp, the form every datetime column stores."""
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """TIMESTAMPTZ that always hands back aware UTC datetimes.

    SQLite drops the offset on write, so values read back there come out
    naive; they are tagged as UTC here so both backends compare alike.
    Naive values on the way in are taken to be UTC already.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)
