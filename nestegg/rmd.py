"""Required Minimum Distribution helpers."""

from __future__ import annotations


def _age_whole_years(age_years: float) -> int:
    return int(max(0.0, age_years))


def divisor_for_age(table: dict[int, float], age_years: float) -> float | None:
    """Divisor for the floored age; ages past the table use its last entry."""
    if not table:
        return None
    age = _age_whole_years(age_years)
    if age in table:
        return table[age]
    youngest = min(table)
    oldest = max(table)
    if age > oldest:
        return table[oldest]
    if age < youngest:
        return table[youngest]
    lower = max(key for key in table if key < age)
    return table[lower]


def compute_rmd_amount(
    balance: float,
    age_years: float,
    *,
    start_age: float,
    table: dict[int, float],
) -> float:
    if age_years < start_age or balance <= 0:
        return 0.0
    divisor = divisor_for_age(table, age_years)
    if divisor is None or divisor <= 0:
        return 0.0
    return balance / divisor
