"""Withdrawal-order policy shared by every module that draws from holdings."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date

from .cost_basis import seasoned_basis
from .schema import EarlyRetirementStrategy, TaxableLotStrategy, WithdrawalStrategy
from .state import HoldingState, SimulationState
from .tax_data import PENALTY_AGE

# Draws from these tax types add ordinary income (Roth earnings only before 59.5).
ORDINARY_INCOME_TYPES = {"traditional", "hsa", "roth"}


@dataclass(slots=True)
class WithdrawalDraw:
    holding_id: str
    tax_type: str
    amount: float
    basis_only: bool = False


def penalized_types(age: float, *, use_72t: bool) -> set[str]:
    """Tax types exposed to the early-withdrawal penalty at ``age``."""
    if age >= PENALTY_AGE:
        return set()
    types = {"roth", "hsa"}
    if not use_72t:
        types.add("traditional")
    return types


def withdrawal_order(
    *,
    order: list[str],
    age: float,
    avoid_early_penalty: bool,
    allow_penalty: bool,
    use_72t: bool,
    harvest_gains: bool,
) -> list[str]:
    penalized = penalized_types(age, use_72t=use_72t)
    result = list(order)
    if penalized:
        if avoid_early_penalty:
            result = [t for t in result if t not in penalized] + [t for t in result if t in penalized]
        elif not allow_penalty:
            unpenalized = [t for t in result if t not in penalized]
            if unpenalized:
                result = unpenalized
    if harvest_gains and "taxable" in result:
        result = ["taxable"] + [t for t in result if t != "taxable"]
    return result


def sort_taxable(holdings: list[HoldingState], *, harvest_gains: bool, harvest_losses: bool) -> list[HoldingState]:
    if harvest_gains:
        return sorted(holdings, key=lambda h: h.unrealized_gain, reverse=True)
    if harvest_losses:
        return sorted(holdings, key=lambda h: h.unrealized_gain)
    return sorted(holdings, key=lambda h: h.balance, reverse=True)


def gain_harvest_target(withdrawal: WithdrawalStrategy, lots: TaxableLotStrategy) -> float:
    return max(withdrawal.taxable_gain_harvest_target, lots.gain_harvest_target)


def plan_withdrawals(
    *,
    state: SimulationState,
    amount: float,
    on: date,
    age: float,
    withdrawal: WithdrawalStrategy,
    early: EarlyRetirementStrategy,
    lots: TaxableLotStrategy,
) -> list[WithdrawalDraw]:
    """Plan per-holding draws covering ``amount``. State is not modified."""
    if amount <= 0:
        return []

    target = gain_harvest_target(withdrawal, lots)
    harvest_gains = target > 0 and state.ledger.capital_gains < target
    order = withdrawal_order(
        order=withdrawal.order,
        age=age,
        avoid_early_penalty=withdrawal.avoid_early_penalty,
        allow_penalty=early.allow_penalty,
        use_72t=early.use_72t,
        harvest_gains=harvest_gains,
    )

    drawn: dict[str, float] = {}
    draws: list[WithdrawalDraw] = []
    remaining = amount
    for tax_type in order:
        if remaining <= 1e-9:
            break
        if tax_type == "roth_basis":
            candidates = sorted(state.holdings_of("roth"), key=lambda h: h.balance, reverse=True)
        elif tax_type == "taxable":
            candidates = sort_taxable(
                state.holdings_of("taxable"),
                harvest_gains=harvest_gains,
                harvest_losses=lots.harvest_losses,
            )
        else:
            candidates = sorted(state.holdings_of(tax_type), key=lambda h: h.balance, reverse=True)

        for holding in candidates:
            if remaining <= 1e-9:
                break
            available = holding.balance - drawn.get(holding.id, 0.0)
            if tax_type == "roth_basis":
                available = min(available, seasoned_basis(holding, on) - drawn.get(holding.id, 0.0))
            take = min(remaining, available)
            if take <= 0:
                continue
            draws.append(
                WithdrawalDraw(
                    holding_id=holding.id,
                    tax_type="roth" if tax_type == "roth_basis" else tax_type,
                    amount=take,
                    basis_only=tax_type == "roth_basis",
                )
            )
            drawn[holding.id] = drawn.get(holding.id, 0.0) + take
            remaining -= take
    return draws


def estimate_ordinary_funding(
    *,
    state: SimulationState,
    amount: float,
    on: date,
    age: float,
    withdrawal: WithdrawalStrategy,
    early: EarlyRetirementStrategy,
    lots: TaxableLotStrategy,
) -> float:
    """Portion of a draw of ``amount`` that would land as ordinary income."""
    draws = plan_withdrawals(
        state=state,
        amount=amount,
        on=on,
        age=age,
        withdrawal=withdrawal,
        early=early,
        lots=lots,
    )
    taxed = {"traditional", "hsa"} if age >= PENALTY_AGE else ORDINARY_INCOME_TYPES
    basis_left: dict[str, float] = {}
    ordinary = 0.0
    for draw in draws:
        if draw.tax_type not in taxed:
            continue
        if draw.tax_type != "roth":
            ordinary += draw.amount
            continue
        # Roth draws take seasoned basis first; only the earnings beyond it are income.
        if draw.holding_id not in basis_left:
            basis_left[draw.holding_id] = seasoned_basis(state.holding(draw.holding_id), on)
        basis = min(draw.amount, basis_left[draw.holding_id])
        basis_left[draw.holding_id] -= basis
        if not draw.basis_only:
            ordinary += draw.amount - basis
    return ordinary
