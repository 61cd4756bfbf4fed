"""Federal tax, Social Security taxability and IRMAA computations.

All functions are pure. A missing policy row (``None``) produces a
zero-effect result instead of an error.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from .schema import IrmaaTable, SsProvisionalBracket, TaxPolicy


@dataclass(slots=True)
class TaxComputation:
    tax_owed: float
    federal_tax: float
    capital_gains_tax: float
    state_tax: float
    magi: float
    taxable_ordinary_income: float
    taxable_capital_gains: float
    taxable_social_security: float
    standard_deduction_applied: float


def progressive_tax(amount: float, brackets: list[tuple[float | None, float]]) -> float:
    if amount <= 0:
        return 0.0

    remaining = amount
    lower = 0.0
    tax = 0.0
    for upper, rate in brackets:
        if remaining <= 0:
            break
        if upper is None:
            taxable_at_rate = remaining
        else:
            taxable_at_rate = min(remaining, max(0.0, upper - lower))
        tax += taxable_at_rate * rate
        remaining -= taxable_at_rate
        if upper is None:
            break
        lower = upper
    return max(0.0, tax)


def compute_capital_gains_tax(
    gains: float,
    ordinary_taxable_income: float,
    brackets: list[tuple[float | None, float]],
) -> float:
    """Tax ``gains`` stacked on top of ordinary taxable income."""
    if gains <= 0 or not brackets:
        return 0.0
    base = max(0.0, ordinary_taxable_income)
    return max(0.0, progressive_tax(base + gains, brackets) - progressive_tax(base, brackets))


def compute_taxable_social_security(
    *,
    benefits: float,
    ordinary_income: float,
    capital_gains: float,
    tax_exempt_income: float,
    bracket: SsProvisionalBracket | None,
) -> tuple[float, float]:
    """Return (taxable_benefits, provisional_income)."""
    if benefits <= 0:
        return 0.0, 0.0
    if bracket is None:
        return benefits, 0.0

    provisional = (
        max(0.0, ordinary_income)
        + max(0.0, capital_gains)
        + max(0.0, tax_exempt_income)
        + 0.5 * benefits
    )

    # Zero thresholds stand in for married filing separately while living together.
    if bracket.base_amount == 0 and bracket.adjusted_base_amount == 0:
        return benefits * 0.85, provisional

    if provisional <= bracket.base_amount:
        return 0.0, provisional
    if provisional <= bracket.adjusted_base_amount:
        return min(benefits * 0.5, 0.5 * (provisional - bracket.base_amount)), provisional

    first_tier = 0.5 * min(benefits, bracket.adjusted_base_amount - bracket.base_amount)
    second_tier = 0.85 * (provisional - bracket.adjusted_base_amount)
    return min(benefits * 0.85, first_tier + second_tier), provisional


def compute_tax(
    *,
    ordinary_income: float,
    capital_gains: float,
    deductions: float,
    tax_exempt_income: float,
    policy: TaxPolicy | None,
    use_standard_deduction: bool = True,
    apply_capital_gains_rates: bool = True,
    social_security_benefits: float = 0.0,
    ss_bracket: SsProvisionalBracket | None = None,
    state_tax_rate: float = 0.0,
    state_tax_fn: Callable[[float], float] | None = None,
) -> TaxComputation:
    taxable_benefits, _ = compute_taxable_social_security(
        benefits=social_security_benefits,
        ordinary_income=ordinary_income,
        capital_gains=capital_gains,
        tax_exempt_income=tax_exempt_income,
        bracket=ss_bracket,
    )
    magi = ordinary_income + taxable_benefits + capital_gains + tax_exempt_income

    standard_deduction = policy.standard_deduction if policy is not None and use_standard_deduction else 0.0
    taxable_ordinary = max(0.0, ordinary_income + taxable_benefits - deductions - standard_deduction)
    taxable_gains = max(0.0, capital_gains)

    if policy is None:
        federal = 0.0
        gains_tax = 0.0
    else:
        federal = progressive_tax(taxable_ordinary, policy.brackets)
        if apply_capital_gains_rates:
            gains_tax = compute_capital_gains_tax(taxable_gains, taxable_ordinary, policy.capital_gains_brackets)
        else:
            gains_tax = progressive_tax(taxable_ordinary + taxable_gains, policy.brackets) - federal

    state_base = taxable_ordinary + taxable_gains
    state = state_tax_fn(state_base) if state_tax_fn is not None else state_tax_rate * state_base

    return TaxComputation(
        tax_owed=federal + gains_tax + state,
        federal_tax=federal,
        capital_gains_tax=gains_tax,
        state_tax=state,
        magi=magi,
        taxable_ordinary_income=taxable_ordinary,
        taxable_capital_gains=taxable_gains,
        taxable_social_security=taxable_benefits,
        standard_deduction_applied=standard_deduction,
    )


def compute_irmaa_surcharge(table: IrmaaTable | None, magi: float) -> tuple[float, float]:
    """Return monthly (part_b, part_d) surcharges for ``magi``."""
    if table is None:
        return 0.0, 0.0
    for ceiling, part_b, part_d in table.tiers:
        if ceiling is None or magi <= ceiling:
            return part_b, part_d
    return 0.0, 0.0


def irmaa_headroom(table: IrmaaTable | None, magi: float) -> float | None:
    """Distance from ``magi`` to the first surcharge tier; None if no table."""
    if table is None or not table.tiers:
        return None
    ceiling = table.tiers[0][0]
    if ceiling is None:
        return None
    return max(0.0, ceiling - magi)


def bracket_ceiling(policy: TaxPolicy | None, rate: float) -> float | None:
    """Upper bound of the highest bracket taxed at or below ``rate``."""
    if policy is None:
        return None
    ceiling = None
    for upper, bracket_rate in policy.brackets:
        if bracket_rate > rate + 1e-9:
            break
        if upper is None:
            return None
        ceiling = upper
    return ceiling
