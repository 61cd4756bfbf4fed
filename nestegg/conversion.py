"""Tax-aware Roth conversion sizing.

Converting raises this year's tax. When that tax has to be paid from
tax-deferred holdings the withdrawal is itself ordinary income, which eats
into the same bracket room the conversion was meant to fill. The solver
iterates on the conversion size until the amount and the taxable funding it
induces agree, using Aitken's delta-squared step to accelerate the fixed
point.
"""

from __future__ import annotations

from dataclasses import dataclass, field
import logging
from typing import Callable

logger = logging.getLogger(__name__)

MAX_ITERATIONS = 5
TOLERANCE = 1.0


@dataclass(slots=True)
class ConversionSolution:
    amount: float
    iterations: int
    converged: bool
    funding: float = 0.0
    history: list[float] = field(default_factory=list)


def aitken_extrapolate(x0: float, x1: float, x2: float) -> float | None:
    """Aitken delta-squared estimate of the limit of x0, x1, x2 (None if degenerate)."""
    denominator = x2 - 2.0 * x1 + x0
    if abs(denominator) < 1e-12:
        return None
    return x2 - (x2 - x1) ** 2 / denominator


def _clamp(
    amount: float,
    *,
    funding: float,
    irmaa_headroom: float | None,
    min_amount: float,
    max_amount: float | None,
) -> float:
    # Minimum first so the IRMAA and maximum caps always win.
    value = max(0.0, amount)
    if min_amount > 0:
        value = max(value, min_amount)
    if irmaa_headroom is not None:
        value = min(value, max(0.0, irmaa_headroom - funding))
    if max_amount is not None:
        value = min(value, max_amount)
    return max(0.0, value)


def solve_conversion(
    *,
    target: float,
    tax_fn: Callable[[float], float],
    cash_available: float,
    estimate_taxable_funding: Callable[[float], float],
    irmaa_headroom: float | None = None,
    min_amount: float = 0.0,
    max_amount: float | None = None,
    max_iterations: int = MAX_ITERATIONS,
    tolerance: float = TOLERANCE,
) -> ConversionSolution:
    """Find the conversion amount consistent with the withdrawals needed to pay its tax.

    ``tax_fn(extra_ordinary)`` returns the year's total tax with
    ``extra_ordinary`` added to ordinary income. ``estimate_taxable_funding``
    maps an amount drawn from holdings to the part of it that is taxable.
    When the iteration budget runs out the last candidate is returned.
    """
    bounds = {"irmaa_headroom": irmaa_headroom, "min_amount": min_amount, "max_amount": max_amount}
    planned = _clamp(target, funding=0.0, **bounds)
    if planned <= 0:
        return ConversionSolution(amount=0.0, iterations=0, converged=True, history=[0.0])

    baseline = tax_fn(0.0)
    funding = 0.0
    history = [planned]
    sequence = [planned]
    converged = False
    iterations = 0
    for iterations in range(1, max_iterations + 1):
        delta_tax = max(0.0, tax_fn(planned + funding) - baseline)
        from_holdings = max(0.0, delta_tax - max(0.0, cash_available))
        funding = estimate_taxable_funding(from_holdings)
        candidate = _clamp(target - funding, funding=funding, **bounds)
        sequence.append(candidate)

        if len(sequence) >= 3:
            accelerated = aitken_extrapolate(*sequence[-3:])
            if accelerated is not None:
                candidate = _clamp(accelerated, funding=funding, **bounds)
                sequence = [candidate]

        history.append(candidate)
        change = abs(candidate - planned)
        logger.debug("conversion iteration %d: candidate=%.2f funding=%.2f", iterations, candidate, funding)
        planned = candidate
        if change < tolerance:
            converged = True
            break

    return ConversionSolution(
        amount=planned,
        iterations=iterations,
        converged=converged,
        funding=funding,
        history=history,
    )
