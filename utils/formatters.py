import re

from config.settings import CURRENCY_SYMBOL


def fmt_amount(value: float, symbol: str = CURRENCY_SYMBOL) -> str:
    """Format money: 1234567.8 -> ₱1,234,567.80"""
    if value is None:
        value = 0.0
    sign = "-" if value < 0 else ""
    return f"{sign}{symbol}{abs(value):,.2f}"


def fmt_percent(value: float) -> str:
    """Format a percentage value: 34.5 -> 34.5%"""
    return f"{value:g}%"


def fmt_months(months: int) -> str:
    """36 -> 3 yrs, 14 -> 1 yr 2 mos"""
    years = months // 12
    remain = months % 12
    if years == 0:
        return f"{remain} mo" if remain == 1 else f"{remain} mos"
    year_part = "1 yr" if years == 1 else f"{years} yrs"
    if remain == 0:
        return year_part
    return f"{year_part} {remain} mo" if remain == 1 else f"{year_part} {remain} mos"


def to_number(value) -> float:
    """Lenient float parse; anything unparseable becomes 0"""
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return 0.0
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        return 0.0
    return parsed


def capitalize_first(text: str) -> str:
    if not text:
        return ""
    return text[0].upper() + text[1:]


def title_case(text: str) -> str:
    """Capitalise the first letter of each space-separated word"""
    if not text or not isinstance(text, str):
        return text
    return " ".join(w[:1].upper() + w[1:] for w in text.lower().split(" "))


def full_name(first: str = "", middle: str = "", last: str = "") -> str:
    """Join name parts, collapsing blanks"""
    return re.sub(r"\s+", " ", f"{first or ''} {middle or ''} {last or ''}").strip()


def split_full_name(name: str):
    """Best-effort split into (first, middle, last); inner tokens form the middle name"""
    parts = str(name or "").strip().split()
    first = parts[0] if parts else ""
    last = parts[-1] if len(parts) > 1 else ""
    middle = " ".join(parts[1:-1]) if len(parts) > 2 else ""
    return first, middle, last
