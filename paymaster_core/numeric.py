"""
Numeric Normalization Module

Turns the loosely typed values handed over by forms, imports and the
persistence layer (numbers, numeric strings, null) into Decimal amounts and
calendar dates. Nothing in here raises on bad input.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from datetime import date, datetime
from typing import Any, Optional
import calendar
import math
import sys

from .config import get_config


ZERO = Decimal('0')
FLOAT_MAX = Decimal(sys.float_info.max)


def to_number(value: Any) -> Decimal:
    """
    Normalize a numeric-like value to a finite Decimal.

    Numbers and numeric strings are parsed; NaN, infinities, empty or
    non-numeric strings, None and any other type yield Decimal('0').
    """
    if value is None or isinstance(value, bool):
        return ZERO

    if isinstance(value, Decimal):
        return value if value.is_finite() and abs(value) <= FLOAT_MAX else ZERO

    if isinstance(value, int):
        return Decimal(value)

    if isinstance(value, float):
        if not math.isfinite(value):
            return ZERO
        return Decimal(str(value))

    if isinstance(value, str):
        text = value.strip()
        # Underscore digit grouping is not a number in stored records
        if not text or "_" in text:
            return ZERO
        try:
            parsed = Decimal(text)
        except InvalidOperation:
            return ZERO
        # Beyond float range counts as infinite
        if not parsed.is_finite() or abs(parsed) > FLOAT_MAX:
            return ZERO
        return parsed

    return ZERO


def round_amount(value: Any, places: Optional[int] = None) -> Decimal:
    """Round a money amount half-up to the configured precision"""
    if places is None:
        places = get_config().amount_precision
    return to_number(value).quantize(Decimal('0.1') ** places, rounding=ROUND_HALF_UP)


def parse_date(value: Any) -> Optional[date]:
    """Parse a date, datetime or ISO string; None when it cannot be read"""
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        return None

    text = value.strip()
    if not text:
        return None
    try:
        return date.fromisoformat(text)
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date()
    except ValueError:
        return None


def add_months(start_date: date, months: int) -> date:
    """Add months to a date, handling month-end edge cases"""
    month = start_date.month - 1 + months
    year = start_date.year + month // 12
    month = month % 12 + 1
    day = min(start_date.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)
