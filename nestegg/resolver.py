"""Resolve prioritized action intents against holding and cash balances."""

from __future__ import annotations

import logging

from .cost_basis import add_lot, consume_basis, realize_sale, relieve_unseasoned, seasoned_basis
from .state import ActionIntent, ActionRecord, BasisLot, HoldingState, SimulationContext, SimulationState
from .tax_data import PENALTY_AGE

logger = logging.getLogger(__name__)

LIMITED_TAX_TYPES = {"traditional", "roth", "hsa"}
BASIS_TRACKED_TYPES = {"taxable", "roth"}


def _attribute_withdrawal(
    record: ActionRecord,
    holding: HoldingState,
    amount: float,
    context: SimulationContext,
    *,
    penalty_rate: float,
    use_72t: bool,
) -> None:
    """Relieve basis for a draw of ``amount`` and add its tax effects to ``record``."""
    intent = record.intent
    early = context.age < PENALTY_AGE
    override = intent.tax_treatment

    ordinary = 0.0
    gain = 0.0
    exempt = 0.0
    penalty = 0.0
    if holding.tax_type == "taxable":
        gain = realize_sale(holding, amount)
    elif holding.tax_type == "roth":
        basis = consume_basis(holding, amount, context.date)
        earnings = amount - basis
        relieve_unseasoned(holding, amount)
        if early:
            ordinary = earnings
            penalty = earnings * penalty_rate
        else:
            exempt = earnings
    elif holding.tax_type == "traditional":
        ordinary = amount
        if early and intent.kind != "rmd" and not use_72t:
            penalty = amount * penalty_rate
    elif holding.tax_type == "hsa":
        ordinary = amount
        if early:
            penalty = amount * penalty_rate

    if override is not None:
        ordinary = gain = exempt = penalty = 0.0
        if override == "ordinary":
            ordinary = amount
        elif override == "capital_gains":
            gain = amount
        elif override == "tax_exempt":
            exempt = amount

    record.ordinary_income += ordinary
    record.realized_gain += gain
    record.tax_exempt_income += exempt
    record.penalty += penalty


def _withdraw(
    record: ActionRecord,
    state: SimulationState,
    context: SimulationContext,
    *,
    penalty_rate: float,
    use_72t: bool,
) -> None:
    intent = record.intent
    requested = max(0.0, intent.amount)

    if intent.source_holding_id is not None:
        holding = state.holding(intent.source_holding_id)
        if holding is None:
            return
        amount = min(requested, max(0.0, holding.balance))
        if intent.basis_only:
            amount = min(amount, seasoned_basis(holding, context.date))
        if amount <= 0:
            return
        _attribute_withdrawal(record, holding, amount, context, penalty_rate=penalty_rate, use_72t=use_72t)
        holding.balance -= amount
        record.source_tax_type = holding.tax_type
        record.resolved_amount = amount
        record.cash_delta = amount
        state.adjust_cash(amount)
        return

    funded = [holding for holding in state.holdings if holding.balance > 0]
    total = sum(holding.balance for holding in funded)
    if total <= 0:
        # Nothing to draw from: the request stands and the shortfall stays in cash.
        record.resolved_amount = requested
        logger.debug("Unfunded withdrawal %s of %.2f in month %d", intent.id, requested, context.month_index)
        return

    amount = min(requested, total)
    for holding in funded:
        share = amount * holding.balance / total
        _attribute_withdrawal(record, holding, share, context, penalty_rate=penalty_rate, use_72t=use_72t)
        holding.balance -= share
    record.resolved_amount = amount
    record.cash_delta = amount
    state.adjust_cash(amount)


def _deposit(record: ActionRecord, state: SimulationState, context: SimulationContext) -> None:
    intent = record.intent
    target = state.holding(intent.target_holding_id)
    if target is None:
        return

    amount = max(0.0, intent.amount)
    if intent.from_cash:
        amount = min(amount, max(0.0, state.cash_balance()))
        if target.tax_type in LIMITED_TAX_TYPES:
            limit = context.policies.contribution_limit(context.date, target.tax_type)
            if limit is not None:
                room = max(0.0, limit - state.contributions_ytd.get(target.tax_type, 0.0))
                amount = min(amount, room)
    if amount <= 0:
        return

    target.balance += amount
    if target.tax_type in BASIS_TRACKED_TYPES:
        add_lot(target, amount, context.date)
    if target.tax_type in LIMITED_TAX_TYPES:
        state.contributions_ytd[target.tax_type] = state.contributions_ytd.get(target.tax_type, 0.0) + amount
    if intent.from_cash:
        state.adjust_cash(-amount)
        record.cash_delta = -amount
    record.target_tax_type = target.tax_type
    record.resolved_amount = amount


def _convert(record: ActionRecord, state: SimulationState, context: SimulationContext) -> None:
    intent = record.intent
    source = state.holding(intent.source_holding_id)
    target = state.holding(intent.target_holding_id)
    if source is None or target is None:
        return

    amount = min(max(0.0, intent.amount), max(0.0, source.balance))
    if amount <= 0:
        return

    source.balance -= amount
    target.balance += amount
    # Each conversion starts its own seasoning clock.
    add_lot(target, amount, context.date)

    if intent.tax_treatment == "tax_exempt":
        record.tax_exempt_income = amount
    elif intent.tax_treatment == "capital_gains":
        record.realized_gain = amount
    else:
        record.ordinary_income = amount
    state.ledger.conversions += amount
    record.source_tax_type = source.tax_type
    record.target_tax_type = target.tax_type
    record.resolved_amount = amount


def _move_basis(source: HoldingState, target: HoldingState, fraction: float) -> None:
    moved: list[BasisLot] = []
    for lot in source.lots:
        share = lot.amount * fraction
        lot.amount -= share
        if share > 1e-9:
            moved.append(BasisLot(date=lot.date, amount=share))
    source.lots = [lot for lot in source.lots if lot.amount > 1e-9]
    target.lots.extend(moved)


def _rebalance(record: ActionRecord, state: SimulationState, context: SimulationContext) -> None:
    intent = record.intent
    source = state.holding(intent.source_holding_id)
    target = state.holding(intent.target_holding_id)
    if source is None or target is None or source is target:
        return

    amount = min(max(0.0, intent.amount), max(0.0, source.balance))
    if amount <= 0:
        return

    if source.tax_type == "taxable":
        record.realized_gain = realize_sale(source, amount)
        if target.tax_type in BASIS_TRACKED_TYPES:
            add_lot(target, amount, context.date)
    elif target.tax_type in BASIS_TRACKED_TYPES:
        _move_basis(source, target, amount / source.balance)

    source.balance -= amount
    target.balance += amount
    record.source_tax_type = source.tax_type
    record.target_tax_type = target.tax_type
    record.resolved_amount = amount


def resolve_actions(
    state: SimulationState,
    context: SimulationContext,
    intents: list[ActionIntent],
    *,
    penalty_rate: float = 0.10,
    use_72t: bool = False,
) -> list[ActionRecord]:
    """Apply intents in priority order (ties keep emission order) and post tax effects to the ledger.

    Every intent yields a record; ``resolved_amount`` is what was actually
    applied after clamping and may be zero.
    """
    records: list[ActionRecord] = []
    for intent in sorted(intents, key=lambda item: item.priority):
        record = ActionRecord(intent=intent, resolved_amount=0.0, month_index=context.month_index)
        if intent.kind in ("withdraw", "rmd"):
            _withdraw(record, state, context, penalty_rate=penalty_rate, use_72t=use_72t)
        elif intent.kind == "deposit":
            _deposit(record, state, context)
        elif intent.kind == "convert":
            _convert(record, state, context)
        elif intent.kind == "rebalance":
            _rebalance(record, state, context)
        else:
            logger.warning("Ignoring intent %s with unknown kind %r", intent.id, intent.kind)

        state.ledger.ordinary_income += record.ordinary_income
        state.ledger.capital_gains += record.realized_gain
        state.ledger.tax_exempt_income += record.tax_exempt_income
        state.ledger.penalties += record.penalty
        records.append(record)
    return records
