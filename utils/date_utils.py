import calendar
from datetime import date, datetime, timezone
from typing import Optional

from dateutil import parser as date_parser

SORT_FALLBACK_DATE = date(1970, 1, 1)

MONTH_ABBR = [calendar.month_abbr[i] for i in range(1, 13)]


def parse_date(value) -> Optional[date]:
    """Parse a date from a string, date or datetime; None when missing or invalid"""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date_parser.parse(str(value)).date()
    except (ValueError, OverflowError):
        return None


def parse_datetime(value) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return date_parser.parse(str(value))
    except (ValueError, OverflowError):
        return None


def epoch_millis(value, fallback: date = SORT_FALLBACK_DATE) -> int:
    """Epoch milliseconds for sorting; missing dates sort as the fallback epoch"""
    dt = parse_datetime(value)
    if dt is None:
        dt = datetime(fallback.year, fallback.month, fallback.day)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)


def fmt_short_date(value) -> str:
    """2024-03-05 -> Mar 5, 2024"""
    d = parse_date(value)
    if d is None:
        return ""
    return f"{MONTH_ABBR[d.month - 1]} {d.day}, {d.year}"


def fmt_clock_time(value) -> str:
    """12-hour clock with two-digit hour: 09:05 PM"""
    dt = parse_datetime(value)
    if dt is None:
        return ""
    return dt.strftime("%I:%M %p")


def fmt_local_date(value) -> str:
    """M/D/YYYY as shown in account tables"""
    d = parse_date(value)
    if d is None:
        return ""
    return f"{d.month}/{d.day}/{d.year}"
