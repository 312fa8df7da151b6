"""Relative time labels for listings ("2 hours ago")."""

from datetime import datetime, timezone
from typing import Optional


def _plural(n: int, unit: str) -> str:
    return f"{n} {unit}{'s' if n > 1 else ''} ago"


def time_ago(ts: datetime, now: Optional[datetime] = None) -> str:
    """Return a coarse label for how long ago `ts` was.

    Naive datetimes (as SQLite returns them) are treated as UTC.
    """
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    now = now or datetime.now(timezone.utc)
    hours = int((now - ts).total_seconds() // 3600)
    if hours < 1:
        return "Just now"
    if hours < 24:
        return _plural(hours, "hour")
    days = hours // 24
    if days < 7:
        return _plural(days, "day")
    return _plural(days // 7, "week")
