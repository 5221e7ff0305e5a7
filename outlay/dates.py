from datetime import date, datetime, timedelta
from typing import Iterator

from outlay.models import ValidationError


def parse_day(value) -> date:
    """Coerce a date-only value (``date``, ``datetime`` or ``YYYY-MM-DD``).

    Strings are read as a plain calendar day. A ``datetime`` keeps its own
    calendar day; it is never shifted through another zone.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"Date must be in YYYY-MM-DD format: {value!r}")
    text = value.strip()
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    # a full timestamp keeps the calendar day as written
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text).date()
    except ValueError:
        raise ValidationError(f"Date must be in YYYY-MM-DD format: {value!r}") from None


def parse_instant(value) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid timestamp: {value!r}") from None


def iter_days(start: date, end: date) -> Iterator[date]:
    c_date = start
    while c_date <= end:
        yield c_date
        c_date += timedelta(days=1)
