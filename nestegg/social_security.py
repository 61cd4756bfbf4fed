"""Social Security benefit estimation (AIME, PIA and claiming adjustment)."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .dates import add_months, months_between, parse_iso
from .schema import PolicyTables, RetirementAdjustment, SocialSecurity, SpendingItem, WorkPeriod
from .tax_data import DEFAULT_NRA_MONTHS, MAX_CLAIM_AGE_MONTHS, TOP_EARNING_YEARS

PIA_RATES = (0.90, 0.32, 0.15)


@dataclass(slots=True)
class EarningsRow:
    year: int
    earnings: float
    months_worked: int
    source: str
    indexed_earnings: float = 0.0
    included: bool = False


@dataclass(slots=True)
class BenefitEstimate:
    claim_date: date
    claim_age_months: int
    aime: float
    bend_points: tuple[float, float]
    pia: float
    nra_months: int
    months_early: int
    months_delayed: int
    adjustment_factor: float
    monthly_benefit: float
    rows: list[EarningsRow] = field(default_factory=list)


def wage_index_value(year: int, wage_index: dict[int, float], cpi_rate: float) -> float:
    """AWI for ``year``; years past the table are extrapolated at CPI."""
    if not wage_index:
        return 0.0
    if year in wage_index:
        return wage_index[year]
    first = min(wage_index)
    last = max(wage_index)
    if year > last:
        return wage_index[last] * (1.0 + cpi_rate) ** (year - last)
    if year < first:
        return wage_index[first]
    return wage_index[max(key for key in wage_index if key < year)]


def bend_points_for_year(
    year: int,
    bend_points: dict[int, tuple[float, float]],
    cpi_rate: float,
) -> tuple[float, float] | None:
    if not bend_points:
        return None
    if year in bend_points:
        return bend_points[year]
    first = min(bend_points)
    last = max(bend_points)
    if year > last:
        factor = (1.0 + cpi_rate) ** (year - last)
        return bend_points[last][0] * factor, bend_points[last][1] * factor
    if year < first:
        return bend_points[first]
    return bend_points[max(key for key in bend_points if key < year)]


def compute_pia(aime: float, bend_points: tuple[float, float]) -> float:
    first, second = bend_points
    first_band = min(aime, first)
    second_band = min(max(aime - first, 0.0), second - first)
    third_band = max(aime - second, 0.0)
    return first_band * PIA_RATES[0] + second_band * PIA_RATES[1] + third_band * PIA_RATES[2]


def retirement_adjustment_for(birth_year: int, adjustments: list[RetirementAdjustment]) -> RetirementAdjustment | None:
    for entry in adjustments:
        if entry.birth_year_start <= birth_year <= entry.birth_year_end:
            return entry
    return None


def claiming_adjustment(
    claim_age_months: int,
    nra_months: int,
    delayed_credit_per_year: float | None,
) -> tuple[float, int, int]:
    """Return (factor, months_early, months_delayed)."""
    if claim_age_months < nra_months:
        early = nra_months - claim_age_months
        reduction = min(early, 36) * (5.0 / 9.0 / 100.0) + max(0, early - 36) * (5.0 / 12.0 / 100.0)
        return max(0.0, 1.0 - reduction), early, 0
    if claim_age_months > nra_months and delayed_credit_per_year is not None:
        delayed = claim_age_months - nra_months
        return 1.0 + delayed * (delayed_credit_per_year / 12.0), 0, delayed
    return 1.0, 0, 0


def _months_active_in_year(year: int, start: date | None, end: date | None, cutoff: date | None) -> int:
    months = 0
    for month in range(1, 13):
        month_start = date(year, month, 1)
        month_end = add_months(month_start, 1)
        if start is not None and month_end <= start:
            continue
        if end is not None and month_start >= end:
            continue
        if cutoff is not None and month_start >= cutoff:
            continue
        months += 1
    return months


def _pre_tax_spending_for_year(
    items: list[SpendingItem],
    year: int,
    months_worked: int,
    cutoff: date | None,
    rate_for: dict[str, float],
) -> float:
    total = 0.0
    for item in items:
        if not item.is_pre_tax:
            continue
        start = parse_iso(item.start_date)
        months = _months_active_in_year(year, start, parse_iso(item.end_date), cutoff)
        if months <= 0:
            continue
        start_year = start.year if start is not None else year
        growth = (1.0 + rate_for.get(item.inflation_type, 0.0)) ** max(0, year - start_year)
        total += (item.need_amount + item.want_amount) * 12.0 * growth * (min(months, months_worked) / 12.0)
    return total


def _build_earnings(
    *,
    social_security: SocialSecurity,
    claim_date: date,
    work_periods: list[WorkPeriod],
    spending_items: list[SpendingItem],
    rate_for: dict[str, float],
) -> dict[int, EarningsRow]:
    claim_year = claim_date.year
    claim_cutoff_months = _months_active_in_year(claim_year, None, None, claim_date)

    rows: dict[int, EarningsRow] = {}
    for record in social_security.earnings:
        if record.year > claim_year:
            continue
        months = min(record.months, claim_cutoff_months) if record.year == claim_year else record.months
        fraction = max(0.0, min(1.0, months / 12.0))
        rows[record.year] = EarningsRow(
            year=record.year,
            earnings=record.amount * fraction,
            months_worked=months,
            source="reported",
        )
    last_reported = max(rows) if rows else None

    gross_by_year: dict[int, float] = {}
    months_by_year: dict[int, int] = {}
    for period in work_periods:
        start = parse_iso(period.start_date)
        end = parse_iso(period.end_date)
        if start is not None:
            first_year = start.year
        elif last_reported is not None:
            first_year = last_reported + 1
        else:
            first_year = claim_year
        last_year = min(end.year if end is not None else claim_year, claim_year)
        for year in range(first_year, last_year + 1):
            cutoff = claim_date if year == claim_year else None
            months = _months_active_in_year(year, start, end, cutoff)
            if months == 0:
                continue
            gross_by_year[year] = gross_by_year.get(year, 0.0) + (period.salary + period.bonus) * months / 12.0
            months_by_year[year] = min(12, months_by_year.get(year, 0) + months)

    for year, gross in gross_by_year.items():
        if last_reported is not None and year <= last_reported:
            continue
        months_worked = months_by_year[year]
        cutoff = claim_date if year == claim_year else None
        pre_tax = _pre_tax_spending_for_year(spending_items, year, months_worked, cutoff, rate_for)
        rows[year] = EarningsRow(
            year=year,
            earnings=max(0.0, gross - pre_tax),
            months_worked=months_worked,
            source="future",
        )
    return rows


def estimate_benefit(
    *,
    birth_date: str,
    social_security: SocialSecurity,
    work_periods: list[WorkPeriod],
    spending_items: list[SpendingItem],
    tables: PolicyTables,
    rate_for: dict[str, float],
) -> BenefitEstimate | None:
    """Estimate the monthly benefit at the configured claim date.

    Earnings are wage-indexed to the claim year (AWI two years before the
    claim). AIME averages the top 35 indexed years over the months those
    years actually include. Returns None when dates or tables are missing.
    """
    birth = parse_iso(birth_date)
    claim_date = parse_iso(social_security.claim_date)
    if birth is None or claim_date is None:
        return None
    cpi_rate = rate_for.get("cpi", 0.0)

    claim_age_months = min(months_between(birth, claim_date), MAX_CLAIM_AGE_MONTHS)
    rows = _build_earnings(
        social_security=social_security,
        claim_date=claim_date,
        work_periods=work_periods,
        spending_items=spending_items,
        rate_for=rate_for,
    )

    awi_claim = wage_index_value(claim_date.year - 2, tables.wage_index, cpi_rate)
    if not awi_claim:
        return None
    for row in rows.values():
        awi_year = wage_index_value(row.year, tables.wage_index, cpi_rate)
        row.indexed_earnings = row.earnings * (awi_claim / awi_year) if awi_year else 0.0

    top = sorted(rows.values(), key=lambda row: row.indexed_earnings, reverse=True)[:TOP_EARNING_YEARS]
    for row in top:
        row.included = True
    included_months = sum(row.months_worked for row in top)
    indexed_total = sum(row.indexed_earnings for row in top)
    aime = indexed_total / included_months if included_months > 0 else 0.0

    bend = bend_points_for_year(claim_date.year, tables.bend_points, cpi_rate)
    if bend is None:
        return None
    pia = compute_pia(aime, bend)

    adjustment = retirement_adjustment_for(birth.year, tables.retirement_adjustments)
    nra_months = adjustment.normal_retirement_age_months if adjustment else DEFAULT_NRA_MONTHS
    factor, months_early, months_delayed = claiming_adjustment(
        claim_age_months,
        nra_months,
        adjustment.delayed_credit_per_year if adjustment else None,
    )

    return BenefitEstimate(
        claim_date=claim_date,
        claim_age_months=claim_age_months,
        aime=aime,
        bend_points=bend,
        pia=pia,
        nra_months=nra_months,
        months_early=months_early,
        months_delayed=months_delayed,
        adjustment_factor=factor,
        monthly_benefit=pia * factor,
        rows=sorted(rows.values(), key=lambda row: row.year),
    )
