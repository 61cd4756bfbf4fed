"""Inflation factors from a flat annual rate or an external index series."""

from __future__ import annotations

from datetime import date

from .dates import add_months, month_index, months_between, parse_iso


def to_monthly_rate(annual_rate: float) -> float:
    return (1.0 + annual_rate) ** (1.0 / 12.0) - 1.0


def _index_value(index: list[float], index_start: date, on: date) -> float | None:
    offset = month_index(on) - month_index(index_start)
    if 0 <= offset < len(index):
        return index[offset]
    return None


def inflation_factor(
    from_date: date | str,
    to_date: date | str,
    rate: float,
    *,
    index: list[float] | None = None,
    index_start: str | None = None,
) -> float:
    """Multiplicative factor carrying an amount from ``from_date`` to ``to_date``.

    When an index series covers both dates the ratio of index values is used.
    Otherwise the annual rate compounds over whole months plus the leftover
    fraction of a month. Going backwards yields the inverse factor.
    """
    start = parse_iso(from_date) if isinstance(from_date, str) else from_date
    end = parse_iso(to_date) if isinstance(to_date, str) else to_date
    if start is None or end is None:
        return 1.0

    if index and index_start:
        anchor = parse_iso(index_start)
        if anchor is not None:
            start_value = _index_value(index, anchor, start)
            end_value = _index_value(index, anchor, end)
            if start_value and end_value:
                return end_value / start_value

    if end < start:
        return 1.0 / inflation_factor(end, start, rate)

    whole = months_between(start, end)
    stepped = add_months(start, whole)
    partial = max(0, (end - stepped).days) / 30.4375
    return (1.0 + rate) ** ((whole + partial) / 12.0)


def inflate_amount(
    amount: float,
    from_date: date | str,
    to_date: date | str,
    rate: float,
    *,
    index: list[float] | None = None,
    index_start: str | None = None,
) -> float:
    return amount * inflation_factor(from_date, to_date, rate, index=index, index_start=index_start)


def inflate_from_year(
    amount: float,
    year: int,
    to_date: date,
    rate: float,
    *,
    index: list[float] | None = None,
    index_start: str | None = None,
) -> float:
    """Inflate a table value stated as of January 1 of ``year``. Never deflates."""
    start = date(year, 1, 1)
    if to_date <= start:
        return amount
    return inflate_amount(amount, start, to_date, rate, index=index, index_start=index_start)
