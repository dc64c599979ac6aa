import dateparser
from datetime import date, datetime, timedelta
import pytz
import re

def get_current_datetime(tz: str = "UTC") -> datetime:
    """Get current datetime with timezone"""
    return datetime.now(pytz.timezone(tz))

def today(tz: str = "UTC") -> date:
    return get_current_datetime(tz).date()

def to_iso_date(text: str, tz: str = "UTC") -> str:
    """Normalise an extracted date ("2025-03-05", "5 March", "next friday") to YYYY-MM-DD.

    Returns "" when nothing date-like can be found.
    """
    if not text:
        return ""
    text = text.strip()
    if re.fullmatch(r"\d{4}-\d{2}-\d{2}", text):
        return text

    base_date = get_current_datetime(tz)
    dt = dateparser.parse(
        text,
        settings={"RELATIVE_BASE": base_date.replace(tzinfo=None), "PREFER_DATES_FROM": "future"},
    )
    if dt:
        return dt.date().isoformat()
    return ""


def _split_iso(value: str):
    parts = value.split("-")
    if len(parts) != 3 or not all(parts):
        return None
    return parts


def to_booking_date(value: str) -> str:
    """YYYY-MM-DD -> DDMMYYYY. Anything that doesn't split into three parts is returned as is."""
    if not value:
        return ""
    parts = _split_iso(value)
    if parts is None:
        return value
    year, month, day = parts
    return f"{day}{month}{year}"


def to_short_date(value: str) -> str:
    """YYYY-MM-DD -> YYMMDD for shareable links."""
    if not value:
        return ""
    parts = _split_iso(value)
    if parts is None:
        return value
    year, month, day = parts
    return f"{year[2:]}{month}{day}"


def from_booking_date(value: str) -> str:
    """DDMMYYYY -> YYYY-MM-DD, or "" when the input is not 8 characters."""
    if not value or len(value) != 8:
        return ""
    return f"{value[4:8]}-{value[2:4]}-{value[0:2]}"


def parse_iso(value: str) -> date:
    return datetime.strptime(value, "%Y-%m-%d").date()


def min_departure_date(min_days_ahead: int, base: date = None, tz: str = "UTC") -> date:
    """Earliest date a search may depart on."""
    return (base or today(tz)) + timedelta(days=min_days_ahead)
