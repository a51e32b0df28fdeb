"""Date parsing for Brazilian bills (DD/MM/YYYY and variants)."""
from __future__ import annotations
from datetime import date
import re

MONTH_NAMES_PT = {
    "jan": 1, "fev": 2, "mar": 3, "abr": 4, "mai": 5, "jun": 6,
    "jul": 7, "ago": 8, "set": 9, "out": 10, "nov": 11, "dez": 12,
}


def parse_bill_date(raw_string: str) -> date:
    """Parse a date printed on a bill.

    Accepts ``DD/MM/YYYY``, ``DD-MM-YYYY``, ``DD.MM.YYYY`` and ISO
    ``YYYY-MM-DD``. Two-digit years are read as 20YY.
    """
    s = raw_string.strip()

    iso_match = re.match(r'^(\d{4})-(\d{2})-(\d{2})$', s)
    if iso_match:
        return date(int(iso_match.group(1)), int(iso_match.group(2)), int(iso_match.group(3)))

    sep_match = re.match(r'^(\d{1,2})[/.\-](\d{1,2})[/.\-](\d{2}|\d{4})$', s)
    if sep_match:
        day, month, year = int(sep_match.group(1)), int(sep_match.group(2)), int(sep_match.group(3))
        if year < 100:
            year += 2000
        return date(year, month, day)

    raise ValueError(f"Cannot parse date: {raw_string}")


def try_parse_bill_date(raw_string: str | None) -> date | None:
    """Like :func:`parse_bill_date` but returns ``None`` on failure."""
    if not raw_string:
        return None
    try:
        return parse_bill_date(raw_string)
    except ValueError:
        return None


def parse_reference_period(raw_string: str) -> tuple[int, int] | None:
    """Parse a reference period like ``"03/2024"`` or ``"MAR/2024"`` into (month, year)."""
    s = raw_string.strip().lower()
    match = re.match(r'^([a-z]{3}|\d{1,2})[/\-\s](\d{4})$', s)
    if not match:
        return None
    token, year = match.group(1), int(match.group(2))
    if token.isdigit():
        month = int(token)
    else:
        month = MONTH_NAMES_PT.get(token, 0)
    if not 1 <= month <= 12:
        return None
    return month, year


def validate_billing_period(start: date, end: date) -> tuple[bool, str | None]:
    """Validate billing period sanity. Returns (is_valid, error_message)."""
    days = (end - start).days
    if days < 0:
        return False, f"Billing period is negative: {days} days (start={start}, end={end})"
    if days == 0:
        return False, "Billing period is zero days"
    if days > 400:
        return False, f"Billing period exceeds 400 days: {days} days"
    if days < 15:
        return True, f"Unusually short billing period: {days} days"
    if days > 45:
        return True, f"Unusually long billing period: {days} days"
    return True, None
