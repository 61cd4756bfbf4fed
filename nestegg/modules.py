"""Strategy module interface.

A module implements any subset of the hooks below; the defaults do nothing,
so the engine dispatches every hook on every module in registration order
without special cases. Modules are built once per run from the snapshot and
keep no state of their own that outlives the run; anything that must
persist between months lives on ``SimulationState``.
"""

from __future__ import annotations

from .explain import ExplainTracker
from .state import (
    ActionIntent,
    ActionRecord,
    CashflowItem,
    CashflowSeriesEntry,
    MarketReturn,
    SimulationContext,
    SimulationState,
    YearPlan,
)


class StrategyModule:
    module_id = "module"
    label = "Module"

    def __init__(self, *, explain: bool = False) -> None:
        self.explain = ExplainTracker(enabled=explain)

    def plan_year(self, state: SimulationState, context: SimulationContext, plan: YearPlan) -> YearPlan:
        """Return the year plan, possibly with fields filled in by this module."""
        return plan

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        return []

    def on_after_cashflows(
        self, cashflows: list[CashflowItem], state: SimulationState, context: SimulationContext
    ) -> list[CashflowItem]:
        """Return extra cashflow items derived from the month's collected cashflows."""
        return []

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        return []

    def on_actions_resolved(
        self, records: list[ActionRecord], state: SimulationState, context: SimulationContext
    ) -> None:
        return None

    def on_market_returns(
        self, returns: list[MarketReturn], state: SimulationState, context: SimulationContext
    ) -> None:
        return None

    def on_end_of_year(self, state: SimulationState, context: SimulationContext) -> None:
        return None

    def cashflow_series(
        self,
        *,
        cashflows: list[CashflowItem],
        records: list[ActionRecord],
        returns: list[MarketReturn],
        context: SimulationContext,
    ) -> list[CashflowSeriesEntry]:
        """Series entries for this module's own cashflows and resolved actions."""
        entries = cashflow_cash_series(self.module_id, self.label, cashflows, context.month_index)
        entries.extend(action_cashflow_series(self.module_id, self.label, records, context.month_index))
        return entries

    def intent(self, **kwargs) -> ActionIntent:
        return ActionIntent(module_id=self.module_id, **kwargs)

    def cashflow(self, **kwargs) -> CashflowItem:
        return CashflowItem(module_id=self.module_id, **kwargs)


def cashflow_cash_series(
    module_id: str, label: str, cashflows: list[CashflowItem], month_index: int
) -> list[CashflowSeriesEntry]:
    total = sum(flow.cash for flow in cashflows)
    if total == 0:
        return []
    return [
        CashflowSeriesEntry(
            month_index=month_index,
            key=f"{module_id}:cash",
            label=f"{label} - cash",
            value=total,
            bucket="cash",
        )
    ]


def action_cashflow_series(
    module_id: str, label: str, records: list[ActionRecord], month_index: int
) -> list[CashflowSeriesEntry]:
    """Cash and per-tax-type investment deltas of resolved actions."""
    cash_delta = 0.0
    by_tax_type: dict[str, float] = {}
    for record in records:
        amount = record.resolved_amount
        if amount == 0:
            continue
        cash_delta += record.cash_delta
        if record.source_tax_type is not None:
            by_tax_type[record.source_tax_type] = by_tax_type.get(record.source_tax_type, 0.0) - amount
        if record.target_tax_type is not None:
            by_tax_type[record.target_tax_type] = by_tax_type.get(record.target_tax_type, 0.0) + amount

    entries: list[CashflowSeriesEntry] = []
    if cash_delta != 0:
        entries.append(
            CashflowSeriesEntry(
                month_index=month_index,
                key=f"{module_id}:cash",
                label=f"{label} - cash",
                value=cash_delta,
                bucket="cash",
            )
        )
    for tax_type, value in by_tax_type.items():
        if value == 0:
            continue
        entries.append(
            CashflowSeriesEntry(
                month_index=month_index,
                key=f"{module_id}:{tax_type}",
                label=f"{label} - {tax_type}",
                value=value,
                bucket=tax_type,
            )
        )
    return entries
