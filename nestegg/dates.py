"""ISO date helpers.

Malformed dates never raise here: parsing yields ``None`` and range checks
treat an unparseable date as "condition not met".
"""

from __future__ import annotations

import calendar
from datetime import date, datetime


def parse_iso(value: str | None) -> date | None:
    """Parse ``YYYY-MM-DD`` or ``YYYY-MM`` (first of month). Invalid input returns None."""
    if not value or not isinstance(value, str):
        return None
    for fmt in ("%Y-%m-%d", "%Y-%m"):
        try:
            return datetime.strptime(value, fmt).date()
        except ValueError:
            continue
    return None


def to_iso(value: date) -> str:
    return value.isoformat()


def add_months(value: date, months: int) -> date:
    total = value.year * 12 + (value.month - 1) + months
    year, month_zero = divmod(total, 12)
    month = month_zero + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def month_index(value: date) -> int:
    return value.year * 12 + value.month - 1


def months_between(start: date | str | None, end: date | str | None) -> int:
    """Whole months from ``start`` to ``end`` (0 if either is missing or end precedes start)."""
    start_date = parse_iso(start) if isinstance(start, str) or start is None else start
    end_date = parse_iso(end) if isinstance(end, str) or end is None else end
    if start_date is None or end_date is None:
        return 0
    months = month_index(end_date) - month_index(start_date)
    if end_date.day < start_date.day:
        months -= 1
    return max(0, months)


def is_within_range(current: date | str, start: str | None, end: str | None) -> bool:
    """Start inclusive, end exclusive; an empty bound is open."""
    current_date = parse_iso(current) if isinstance(current, str) else current
    if current_date is None:
        return False
    if start:
        start_date = parse_iso(start)
        if start_date is None or current_date < start_date:
            return False
    if end:
        end_date = parse_iso(end)
        if end_date is None or current_date >= end_date:
            return False
    return True


def is_same_month(left: date | str | None, right: date | str | None) -> bool:
    left_date = parse_iso(left) if isinstance(left, str) or left is None else left
    right_date = parse_iso(right) if isinstance(right, str) or right is None else right
    if left_date is None or right_date is None:
        return False
    return left_date.year == right_date.year and left_date.month == right_date.month


def age_at(birth_date: str, on: date) -> float:
    birth = parse_iso(birth_date)
    if birth is None:
        return 0.0
    return months_between(birth, on) / 12.0
