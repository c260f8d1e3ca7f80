"""
Utility helper functions
"""
from datetime import date, datetime, timedelta, timezone
import json
from typing import Any, Optional


def utcnow() -> datetime:
    """Naive UTC timestamp, matching the TIMESTAMP columns"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def add_years(start: date, years: int) -> date:
    """
    Calendar-year arithmetic. Feb 29 rolls back to Feb 28 when the
    target year is not a leap year.
    """
    try:
        return start.replace(year=start.year + years)
    except ValueError:
        return start.replace(year=start.year + years, day=28)


def hour_window(now: datetime) -> tuple[datetime, datetime]:
    """Return the hour-aligned window [start, start + 1h) containing ``now``"""
    start = now.replace(minute=0, second=0, microsecond=0)
    return start, start + timedelta(hours=1)


def truncate_text(text: str, length: int = 100) -> str:
    """Truncate text to specified length"""
    if len(text) <= length:
        return text
    return text[:length]


def to_json_snippet(value: Any, limit: int) -> Optional[str]:
    """Serialize ``value`` to JSON and cut it to ``limit`` characters"""
    if value is None:
        return None
    if isinstance(value, (bytes, bytearray)):
        text = value.decode("utf-8", errors="replace")
    elif isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, default=str)
    return truncate_text(text, limit)
