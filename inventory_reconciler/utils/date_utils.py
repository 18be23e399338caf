# inventory_reconciler/utils/date_utils.py
import re
from datetime import date, datetime, timedelta, timezone
from typing import Any, Optional

_DATE_ONLY = re.compile(r'^\d{4}-\d{2}-\d{2}$')
# Seconds fraction of any length; fromisoformat before 3.11 takes only 3 or 6 digits.
_FRACTION = re.compile(r'([T ]\d{2}:\d{2}:\d{2})\.(\d+)')


def utc_now() -> datetime:
    """Get the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def utc_now_iso() -> str:
    """Get the current time as an ISO-8601 UTC string."""
    return utc_now().isoformat()


def since_iso(lookback: timedelta, now: Optional[datetime] = None) -> str:
    """Get the ISO-8601 start of a lookback window ending now.

    Args:
        lookback: Window length
        now: Optional reference time (defaults to the current UTC time)

    Returns:
        ISO-8601 UTC timestamp
    """
    return ((now or utc_now()) - lookback).isoformat()


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse a date, datetime or ISO-8601 string into an aware UTC datetime.

    Date-only values map to midnight UTC, naive timestamps are taken as UTC.
    Returns None for empty or unparseable input.
    """
    if value is None or value == '':
        return None

    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, date):
        moment = datetime(value.year, value.month, value.day)
    else:
        text = str(value).strip()
        if _DATE_ONLY.match(text):
            text = f"{text}T00:00:00"
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        text = _FRACTION.sub(lambda m: f"{m.group(1)}.{m.group(2)[:6].ljust(6, '0')}", text)
        try:
            moment = datetime.fromisoformat(text)
        except ValueError:
            return None

    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def to_iso_or_null(value: Any) -> Optional[str]:
    """Normalize a source date to an ISO-8601 UTC string, or None if unusable."""
    moment = parse_timestamp(value)
    return moment.isoformat() if moment else None
