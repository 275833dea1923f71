"""Datetime helpers. All stored timestamps are naive UTC."""
from datetime import datetime, timezone
from typing import Optional


def utcnow() -> datetime:
    """Current time as naive UTC."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalize aware datetimes to naive UTC so they compare with DB values."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_datetime(value) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (as sent by the admin forms) into naive UTC.
    
    Accepts a trailing 'Z'. Returns None for empty values.
    
    Raises:
        ValueError: if the value is not a valid ISO datetime.
    """
    if value is None or value == '':
        return None
    if isinstance(value, datetime):
        return as_naive_utc(value)
    text = str(value).strip()
    if text.endswith('Z'):
        text = text[:-1] + '+00:00'
    return as_naive_utc(datetime.fromisoformat(text))
