"""Market model: monthly growth of cash accounts and holdings."""

from __future__ import annotations

import hashlib
import logging
import math
import random

from .inflation import to_monthly_rate
from .modules import StrategyModule
from .portfolio_modules import asset_class
from .schema import SimulationSettings, Snapshot
from .state import (
    ActionRecord,
    CashflowItem,
    CashflowSeriesEntry,
    HoldingState,
    MarketReturn,
    SimulationContext,
    SimulationState,
)

logger = logging.getLogger(__name__)

MIN_MONTHLY_RETURN = -0.95


def derive_seed(scenario_id: str, start_date: str) -> int:
    """Stable 32-bit seed from the scenario id and start date."""
    digest = hashlib.sha256(f"{scenario_id}:{start_date}".encode("utf-8")).digest()
    return int.from_bytes(digest[:4], "big")


def resolve_seed(snapshot: Snapshot, settings: SimulationSettings, start_date: str) -> int:
    if settings.seed is not None:
        return settings.seed
    if snapshot.scenario.strategies.returns.seed is not None:
        return snapshot.scenario.strategies.returns.seed
    return derive_seed(snapshot.scenario.id, start_date)


class MarketModel:
    """Applies one month of returns to the state.

    Deterministic mode grows every holding at its expected rate. Stochastic
    mode adds a normal shock scaled to a monthly standard deviation
    (``independent``), or draws one shock per year and spreads it evenly over
    the months (``regime``). With ``correlation_model == "asset_class"``
    holdings of the same asset class share their shock.
    """

    def __init__(self, snapshot: Snapshot, seed: int) -> None:
        self.strategy = snapshot.scenario.strategies.returns
        self.seed = seed
        self.rng = random.Random(seed)
        self._shocks: dict[tuple[int, str], float] = {}

    @property
    def stochastic(self) -> bool:
        return self.strategy.mode == "stochastic"

    def _shock_key(self, holding: HoldingState) -> str:
        if self.strategy.correlation_model == "asset_class":
            return asset_class(holding) or "cash"
        return holding.id

    def _shock(self, holding: HoldingState, context: SimulationContext) -> float:
        regime = self.strategy.sequence_model == "regime"
        period = context.year_index if regime else context.month_index
        key = (period, self._shock_key(holding))
        if key not in self._shocks:
            self._shocks[key] = self.rng.gauss(0.0, 1.0)
        divisor = 12.0 if regime else math.sqrt(12.0)
        return self._shocks[key] * holding.return_std_dev * self.strategy.volatility_scale / divisor

    def holding_rate(self, holding: HoldingState, context: SimulationContext) -> float:
        rate = to_monthly_rate(holding.return_rate)
        if self.stochastic and holding.return_std_dev > 0:
            rate += self._shock(holding, context)
        return max(MIN_MONTHLY_RETURN, rate)

    def apply(self, state: SimulationState, context: SimulationContext) -> list[MarketReturn]:
        returns: list[MarketReturn] = []
        for account in state.cash_accounts:
            if account.balance <= 0 or account.interest_rate == 0:
                continue
            rate = to_monthly_rate(account.interest_rate)
            growth = account.balance * rate
            account.balance += growth
            returns.append(MarketReturn(id=account.id, tax_type="cash", amount=growth, rate=rate))

        for holding in state.holdings:
            if holding.balance <= 0:
                continue
            rate = self.holding_rate(holding, context)
            growth = holding.balance * rate
            holding.balance = max(0.0, holding.balance + growth)
            returns.append(MarketReturn(id=holding.id, tax_type=holding.tax_type, amount=growth, rate=rate))

        # Shocks from finished periods are never looked up again.
        if self.strategy.sequence_model != "regime" or context.is_end_of_year:
            self._shocks.clear()
        return returns


class ReturnsModule(StrategyModule):
    module_id = "returns"
    label = "Returns"

    def on_market_returns(
        self, returns: list[MarketReturn], state: SimulationState, context: SimulationContext
    ) -> None:
        for bucket, total in _bucket_totals(returns).items():
            self.explain.add_checkpoint(f"Growth {bucket}", total)

    def cashflow_series(
        self,
        *,
        cashflows: list[CashflowItem],
        records: list[ActionRecord],
        returns: list[MarketReturn],
        context: SimulationContext,
    ) -> list[CashflowSeriesEntry]:
        return [
            CashflowSeriesEntry(
                month_index=context.month_index,
                key=f"{self.module_id}:{bucket}",
                label=f"{self.label} - {bucket}",
                value=total,
                bucket=bucket,
            )
            for bucket, total in _bucket_totals(returns).items()
            if total != 0
        ]


def _bucket_totals(returns: list[MarketReturn]) -> dict[str, float]:
    totals: dict[str, float] = {}
    for item in returns:
        totals[item.tax_type] = totals.get(item.tax_type, 0.0) + item.amount
    return totals
