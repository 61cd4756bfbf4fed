"""Healthcare premiums and the Medicare IRMAA surcharge."""

from __future__ import annotations

from .dates import is_within_range
from .modules import StrategyModule
from .schema import Snapshot
from .state import CashflowItem, SimulationContext, SimulationState
from .tax import compute_irmaa_surcharge
from .tax_data import MEDICARE_AGE


def lookback_magi(state: SimulationState, year_index: int, lookback_years: int) -> float:
    """MAGI recorded ``lookback_years`` simulation years ago (0 before the run began)."""
    return state.magi_history.get(year_index - lookback_years, 0.0)


class HealthcareModule(StrategyModule):
    module_id = "healthcare"
    label = "Healthcare"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.strategy = snapshot.scenario.strategies.healthcare
        self.covered_periods = [period for period in snapshot.work_periods if period.includes_health_insurance]

    def covered_by_work(self, context: SimulationContext) -> bool:
        return any(
            is_within_range(context.date, period.start_date, period.end_date) for period in self.covered_periods
        )

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        if self.covered_by_work(context):
            self.explain.add_input("Covered by work", True)
            return []

        medicare = context.age >= MEDICARE_AGE
        base = self.strategy.medicare_monthly_premium if medicare else self.strategy.pre_medicare_monthly_premium
        premium = context.inflate(base, context.start_date, self.strategy.inflation_type) if base > 0 else 0.0

        surcharge = 0.0
        if medicare and self.strategy.irmaa_enabled:
            table = context.policies.irmaa_table(context.date, context.filing_status)
            if table is not None:
                magi = lookback_magi(state, context.year_index, table.lookback_years)
                part_b, part_d = compute_irmaa_surcharge(table, magi)
                surcharge = part_b + part_d
                self.explain.add_input("IRMAA lookback years", table.lookback_years)
                self.explain.add_checkpoint("MAGI", magi)

        total = premium + surcharge
        self.explain.add_input("Is Medicare", medicare)
        self.explain.add_checkpoint("Premium", premium)
        self.explain.add_checkpoint("IRMAA surcharge", surcharge)
        if total <= 0:
            return []
        return [
            self.cashflow(
                id=f"healthcare-{context.month_index}",
                label="Healthcare",
                category="healthcare",
                cash=-total,
            )
        ]
