"""Numeric and date helpers shared by the health, alerts and admin modules."""

import calendar
import math
from datetime import date, datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Iterable, Mapping, Optional


def to_number(value: Any) -> float:
    """Coerce a stored amount (number, numeric string or None) to float.

    Non-numeric and non-finite values become 0.0.
    """
    if value is None:
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(number) or math.isinf(number):
        return 0.0
    return number


def round_money(value: float, places: int = 2) -> float:
    """Round half away from zero to a fixed number of decimal places.

    Args:
        value: Value to round
        places: Decimal places to keep (default: 2)

    Returns:
        Rounded float, 0.0 for NaN or infinite input
    """
    if value is None or math.isnan(value) or math.isinf(value):
        return 0.0
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def safe_divide(numerator: float, denominator: float) -> float:
    """Divide, returning 0.0 when the denominator is not positive."""
    if denominator <= 0:
        return 0.0
    result = numerator / denominator
    if math.isnan(result) or math.isinf(result):
        return 0.0
    return result


def sum_field(rows: Iterable[Mapping[str, Any]], field: str) -> float:
    """Sum a numeric field across rows, treating missing values as zero."""
    return sum(to_number(row.get(field)) for row in rows)


def subtract_months(day: date, months: int) -> date:
    """Move a date back by whole months, clamping to the last day of the target month.

    Example:
        subtract_months(date(2024, 2, 29), 12) == date(2023, 2, 28)
    """
    month_index = day.year * 12 + (day.month - 1) - months
    year, month = divmod(month_index, 12)
    month += 1
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, min(day.day, last_day))


def add_months(day: date, months: int) -> date:
    """Move a date forward by whole months, clamping to month length."""
    return subtract_months(day, -months)


def clamp_day(year: int, month: int, day: int) -> date:
    """Build a date, clamping ``day`` into the month (31 in April becomes 30)."""
    last_day = calendar.monthrange(year, month)[1]
    return date(year, month, max(1, min(day, last_day)))


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse the leading YYYY-MM-DD part of a date or timestamp string."""
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (``Z`` suffix allowed) as an aware datetime.

    Naive values are taken as UTC.

    Raises:
        ValueError: If the value is not an ISO timestamp
    """
    if not value:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
