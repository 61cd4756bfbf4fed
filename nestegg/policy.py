"""Year-indexed policy lookups with inflation to the simulation date."""

from __future__ import annotations

import bisect
from dataclasses import replace
from datetime import date
import logging
from typing import Any, Callable, Generic, Iterable, TypeVar

from .inflation import inflate_from_year
from .schema import (
    InflationAssumptions,
    IrmaaTable,
    PayrollPolicy,
    PolicyTables,
    SsProvisionalBracket,
    TaxPolicy,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


def select_by_year(records: Iterable[Any], year: int) -> Any | None:
    """Pick the record for ``year``: exact, else most recent prior, else earliest."""
    exact = None
    prior = None
    earliest = None
    for record in records:
        if record.year == year:
            exact = record
        elif record.year < year and (prior is None or record.year > prior.year):
            prior = record
        if earliest is None or record.year < earliest.year:
            earliest = record
    return exact or prior or earliest


class PolicyIndex(Generic[T]):
    """Sorted year index per key, built once per run."""

    def __init__(self, records: Iterable[T], key: Callable[[T], str]) -> None:
        self._years: dict[str, list[int]] = {}
        self._records: dict[str, list[T]] = {}
        grouped: dict[str, dict[int, T]] = {}
        for record in records:
            grouped.setdefault(key(record), {})[record.year] = record  # type: ignore[attr-defined]
        for group_key, by_year in grouped.items():
            years = sorted(by_year)
            self._years[group_key] = years
            self._records[group_key] = [by_year[year] for year in years]

    def lookup(self, key: str, year: int) -> T | None:
        years = self._years.get(key)
        if not years:
            return None
        pos = bisect.bisect_right(years, year)
        if pos == 0:
            return self._records[key][0]
        return self._records[key][pos - 1]

    def has_exact(self, key: str, year: int) -> bool:
        years = self._years.get(key, [])
        pos = bisect.bisect_left(years, year)
        return pos < len(years) and years[pos] == year

    def has_key(self, key: str) -> bool:
        return bool(self._years.get(key))


def _scale_brackets(brackets: list[tuple[float | None, float]], factor: float) -> list[tuple[float | None, float]]:
    return [(None if upper is None else upper * factor, rate) for upper, rate in brackets]


class PolicySet:
    """Inflation-adjusted policy lookups for one run.

    Table values are treated as stated on January 1 of their year and are
    carried forward to the lookup date at the CPI assumption (or the
    configured index series). Missing rows yield ``None`` and a single
    warning per key.
    """

    def __init__(self, tables: PolicyTables, inflation: InflationAssumptions) -> None:
        self.tables = tables
        self.inflation = inflation
        self.tax_index = PolicyIndex(tables.tax_policies, lambda item: item.filing_status)
        self.ss_index = PolicyIndex(tables.ss_brackets, lambda item: item.filing_status)
        self.irmaa_index = PolicyIndex(tables.irmaa_tables, lambda item: item.filing_status)
        self.payroll_index = PolicyIndex(tables.payroll_policies, lambda item: item.filing_status)
        self.limit_index = PolicyIndex(tables.contribution_limits, lambda item: item.tax_type)
        self._warned: set[tuple[str, str, int]] = set()

    def _factor(self, year: int, on: date) -> float:
        return inflate_from_year(
            1.0,
            year,
            on,
            self.inflation.cpi,
            index=self.inflation.index,
            index_start=self.inflation.index_start,
        )

    def _missing(self, table: str, key: str, year: int) -> None:
        marker = (table, key, year)
        if marker in self._warned:
            return
        self._warned.add(marker)
        logger.warning("No %s policy for %s in %d; treating as zero effect", table, key, year)

    def tax_policy(self, on: date, filing_status: str) -> TaxPolicy | None:
        policy = self.tax_index.lookup(filing_status, on.year)
        if policy is None:
            self._missing("tax", filing_status, on.year)
            return None
        factor = self._factor(policy.year, on)
        return replace(
            policy,
            brackets=_scale_brackets(policy.brackets, factor),
            standard_deduction=policy.standard_deduction * factor,
            capital_gains_brackets=_scale_brackets(policy.capital_gains_brackets, factor),
        )

    def ss_bracket(self, on: date, filing_status: str) -> SsProvisionalBracket | None:
        bracket = self.ss_index.lookup(filing_status, on.year)
        if bracket is None:
            self._missing("social security provisional", filing_status, on.year)
            return None
        factor = self._factor(bracket.year, on)
        return replace(
            bracket,
            base_amount=bracket.base_amount * factor,
            adjusted_base_amount=bracket.adjusted_base_amount * factor,
        )

    def irmaa_table(self, on: date, filing_status: str) -> IrmaaTable | None:
        table = self.irmaa_index.lookup(filing_status, on.year)
        if table is None:
            self._missing("irmaa", filing_status, on.year)
            return None
        factor = self._factor(table.year, on)
        tiers = [(None if ceiling is None else ceiling * factor, part_b, part_d) for ceiling, part_b, part_d in table.tiers]
        return replace(table, tiers=tiers)

    def payroll_policy(self, on: date, filing_status: str) -> PayrollPolicy | None:
        policy = self.payroll_index.lookup(filing_status, on.year)
        if policy is None:
            self._missing("payroll", filing_status, on.year)
            return None
        factor = self._factor(policy.year, on)
        return replace(
            policy,
            social_security_wage_base=policy.social_security_wage_base * factor,
            additional_medicare_threshold=policy.additional_medicare_threshold * factor,
        )

    def contribution_limit(self, on: date, tax_type: str) -> float | None:
        """Annual limit for ``tax_type``; None means unlimited."""
        limit = self.limit_index.lookup(tax_type, on.year)
        if limit is None:
            return None
        return limit.amount * self._factor(limit.year, on)

    @property
    def rmd_table(self) -> dict[int, float]:
        return self.tables.rmd_table
