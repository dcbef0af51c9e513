from datetime import datetime, timezone
from typing import Optional


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """
    Some drivers (sqlite) hand back naive datetimes even for
    DateTime(timezone=True) columns. Everything we store is UTC.
    """
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


system_clock = SystemClock()
