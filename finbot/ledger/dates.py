"""Date helpers for ledger input parsing.

Dates from the model arrive as strings. Transactions use the
day-first DD.MM.YYYY form; budgets and edits also accept ISO YYYY-MM-DD.
"""
from datetime import date, datetime, time, timezone
from typing import Optional, Union


DAY_FIRST_FORMAT = "%d.%m.%Y"
ISO_FORMAT = "%Y-%m-%d"


def utc_today() -> date:
    """Current calendar day in UTC."""
    return datetime.now(timezone.utc).date()


def start_of_day(day: date) -> datetime:
    """UTC midnight of the given day."""
    return datetime.combine(day, time.min, tzinfo=timezone.utc)


def parse_day_first(value: str) -> Optional[date]:
    """Parse DD.MM.YYYY strictly. Returns None when the string does not match."""
    try:
        return datetime.strptime(value.strip(), DAY_FIRST_FORMAT).date()
    except (ValueError, AttributeError):
        return None


def parse_flexible(value: str) -> Optional[date]:
    """Parse DD.MM.YYYY or YYYY-MM-DD. Returns None when neither matches."""
    if not isinstance(value, str):
        return None
    for fmt in (DAY_FIRST_FORMAT, ISO_FORMAT):
        try:
            return datetime.strptime(value.strip(), fmt).date()
        except ValueError:
            continue
    return None


def day_of(value: Union[date, datetime]) -> date:
    """Calendar day of a stored date or datetime (UTC for aware datetimes)."""
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value.date()
    return value


def format_day(value: Union[date, datetime]) -> str:
    return day_of(value).strftime(DAY_FIRST_FORMAT)
