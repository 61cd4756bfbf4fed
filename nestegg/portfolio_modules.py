"""Modules that move money between cash and holdings."""

from __future__ import annotations

from dataclasses import replace
import logging

from .conversion import solve_conversion
from .dates import is_within_range
from .modules import StrategyModule
from .rmd import compute_rmd_amount, divisor_for_age
from .schema import GlidepathTarget, Snapshot, SpendingItem
from .state import (
    ActionIntent,
    ActionRecord,
    CashflowItem,
    HoldingState,
    SimulationContext,
    SimulationState,
    YearPlan,
)
from .tax import bracket_ceiling, irmaa_headroom
from .tax_module import compute_year_tax
from .withdrawals import estimate_ordinary_funding, penalized_types, plan_withdrawals

logger = logging.getLogger(__name__)

ASSET_CLASSES = ("equity", "bonds", "real_estate", "other")

# Lower sells first when rebalancing is tax aware.
TAX_AWARE_SELL_RANK = {"traditional": 0, "hsa": 1, "roth": 2, "taxable": 3}
ACCOUNT_RANK = {"traditional": 0, "roth": 1, "hsa": 2, "taxable": 3}


def monthly_spending(items: list[SpendingItem], context: SimulationContext) -> float:
    """Unadjusted need plus want spending for the step's month."""
    total = 0.0
    for item in items:
        if not is_within_range(context.date, item.start_date, item.end_date):
            continue
        start = item.start_date or context.start_date
        total += context.inflate(item.need_amount, start, item.inflation_type)
        total += context.inflate(item.want_amount, start, item.inflation_type)
    return total


def _in_age_range(age: float, start_age: float | None, end_age: float | None) -> bool:
    if start_age is not None and age < start_age:
        return False
    if end_age is not None and age > end_age:
        return False
    return True


def asset_class(holding: HoldingState) -> str | None:
    """Map a holding type onto a rebalancing asset class (None for cash)."""
    if holding.holding_type == "cash":
        return None
    if holding.holding_type in ("bonds", "real_estate", "other"):
        return holding.holding_type
    return "equity"


def interpolate_targets(targets: list[GlidepathTarget], key: float) -> dict[str, float] | None:
    if not targets:
        return None
    ordered = sorted(targets, key=lambda target: target.key)
    if key <= ordered[0].key:
        return ordered[0].weights()
    if key >= ordered[-1].key:
        return ordered[-1].weights()
    for lower, upper in zip(ordered, ordered[1:]):
        if key <= upper.key:
            ratio = (key - lower.key) / max(1e-9, upper.key - lower.key)
            low, high = lower.weights(), upper.weights()
            return {asset: low[asset] + (high[asset] - low[asset]) * ratio for asset in ASSET_CLASSES}
    return ordered[-1].weights()


def _normalize(weights: dict[str, float]) -> dict[str, float] | None:
    total = sum(weights.values())
    if total <= 0:
        return None
    return {asset: value / total for asset, value in weights.items()}


def _current_weights(holdings: list[HoldingState]) -> dict[str, float] | None:
    totals = {asset: 0.0 for asset in ASSET_CLASSES}
    for holding in holdings:
        asset = asset_class(holding)
        if asset is not None:
            totals[asset] += holding.balance
    return _normalize(totals)


class CashBufferModule(StrategyModule):
    """Keep months of spending in cash: refill below the minimum, invest above the maximum."""

    module_id = "cash_buffer"
    label = "Cash buffer"

    REFILL_ORDERS = {
        "taxable_first": ["taxable", "traditional", "roth", "hsa"],
        "tax_deferred_first": ["traditional", "taxable", "roth", "hsa"],
    }

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        strategies = snapshot.scenario.strategies
        self.strategy = strategies.cash_buffer
        self.withdrawal = strategies.withdrawal
        self.early = strategies.early_retirement
        self.lots = strategies.taxable_lots
        self.items = snapshot.spending_items

    def _refill(self, state: SimulationState, context: SimulationContext, needed: float) -> list[ActionIntent]:
        refill = self.strategy.refill_priority
        if refill == "pro_rata":
            return [
                self.intent(
                    id=f"cash-buffer-{context.month_index}",
                    kind="withdraw",
                    amount=needed,
                    priority=60,
                    label="Refill cash buffer",
                )
            ]

        withdrawal = self.withdrawal
        if refill in self.REFILL_ORDERS:
            withdrawal = replace(withdrawal, order=self.REFILL_ORDERS[refill])
        draws = plan_withdrawals(
            state=state,
            amount=needed,
            on=context.date,
            age=context.age,
            withdrawal=withdrawal,
            early=self.early,
            lots=self.lots,
        )
        return [
            self.intent(
                id=f"cash-buffer-{draw.holding_id}",
                kind="withdraw",
                amount=draw.amount,
                source_holding_id=draw.holding_id,
                basis_only=draw.basis_only,
                priority=60 + offset,
                label="Refill cash buffer",
            )
            for offset, draw in enumerate(draws)
        ]

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        spending = monthly_spending(self.items, context)
        if spending <= 0:
            return []
        target_months = max(self.strategy.target_months, max(0.0, self.early.bridge_cash_years) * 12.0)
        max_months = max(self.strategy.max_months, target_months)
        target = spending * target_months
        minimum = spending * min(self.strategy.min_months, target_months)
        maximum = spending * max_months
        cash = state.cash_balance()
        self.explain.add_input("Monthly spending", spending)
        self.explain.add_checkpoint("Target", target)
        self.explain.add_checkpoint("Cash", cash)

        if cash < minimum:
            # A negative balance is the funding module's to cover.
            needed = max(0.0, target - max(0.0, cash))
            return self._refill(state, context, needed) if needed > 0 else []

        if cash > maximum:
            candidates = state.holdings_of("taxable") or state.holdings
            if not candidates:
                return []
            destination = max(candidates, key=lambda holding: holding.balance)
            return [
                self.intent(
                    id=f"cash-buffer-invest-{context.month_index}",
                    kind="deposit",
                    amount=cash - target,
                    target_holding_id=destination.id,
                    from_cash=True,
                    priority=70,
                    label="Invest excess cash",
                )
            ]
        return []


class RebalancingModule(StrategyModule):
    """Trade toward glide-path (or initial) asset-class weights within each account."""

    module_id = "rebalancing"
    label = "Rebalancing"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.glidepath = snapshot.scenario.strategies.glidepath
        self.strategy = snapshot.scenario.strategies.rebalancing
        self.baseline: dict[str, float] | None = None

    def _due(self, context: SimulationContext) -> bool:
        frequency = self.strategy.frequency
        if frequency == "quarterly":
            return context.month_index % 3 == 2
        if frequency == "annual":
            return context.is_end_of_year
        return True

    def _targets(self, holdings: list[HoldingState], context: SimulationContext) -> dict[str, float] | None:
        if self.glidepath.targets:
            key = context.year_index if self.glidepath.mode == "year" else context.age
            weights = interpolate_targets(self.glidepath.targets, key)
            return _normalize(weights) if weights is not None else None
        if self.baseline is None:
            self.baseline = _current_weights(holdings)
        return self.baseline

    def _sell_order(self, holdings: list[HoldingState]) -> list[HoldingState]:
        if self.strategy.tax_aware:
            return sorted(holdings, key=lambda h: (TAX_AWARE_SELL_RANK.get(h.tax_type, 9), -h.balance))
        return sorted(holdings, key=lambda h: -h.balance)

    def _holding_for(
        self, state: SimulationState, account: list[HoldingState], account_id: str, asset: str, tax_type: str
    ) -> HoldingState:
        for holding in account:
            if asset_class(holding) == asset and holding.tax_type == tax_type:
                return holding
        reference = next((h for h in state.holdings if asset_class(h) == asset), None)
        holding = HoldingState(
            id=f"{account_id}-{asset}-{tax_type}",
            name=reference.name if reference else asset.replace("_", " ").title(),
            account_id=account_id,
            tax_type=tax_type,
            holding_type=reference.holding_type if reference else asset,
            balance=0.0,
            return_rate=reference.return_rate if reference else 0.0,
            return_std_dev=reference.return_std_dev if reference else 0.0,
        )
        state.holdings.append(holding)
        account.append(holding)
        return holding

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        if not self.strategy.enabled:
            return []
        invested = [holding for holding in state.holdings if asset_class(holding) is not None]
        targets = self._targets(invested, context)
        self.explain.add_input("Frequency", self.strategy.frequency)
        self.explain.add_input("Tax aware", self.strategy.tax_aware)
        if not self._due(context) or targets is None:
            return []

        totals = {asset: 0.0 for asset in ASSET_CLASSES}
        for holding in invested:
            totals[asset_class(holding)] += holding.balance
        total = sum(totals.values())
        if total <= 0:
            return []

        drift = max(abs(totals[asset] / total - targets[asset]) for asset in ASSET_CLASSES)
        self.explain.add_checkpoint("Max drift", drift)
        if self.strategy.drift_threshold > 0 and drift <= self.strategy.drift_threshold:
            return []

        buy = {asset: 0.0 for asset in ASSET_CLASSES}
        sell = {asset: 0.0 for asset in ASSET_CLASSES}
        for asset in ASSET_CLASSES:
            delta = targets[asset] * total - totals[asset]
            if abs(delta) < self.strategy.min_trade_amount:
                continue
            if delta > 0:
                buy[asset] = delta
            else:
                sell[asset] = -delta
        if sum(buy.values()) <= 0 or sum(sell.values()) <= 0:
            return []

        accounts: dict[str, list[HoldingState]] = {}
        for holding in invested:
            accounts.setdefault(holding.account_id, []).append(holding)
        ordered_accounts = sorted(
            accounts.items(),
            key=lambda item: (
                min(ACCOUNT_RANK.get(h.tax_type, 9) for h in item[1]),
                -sum(h.balance for h in item[1]),
            ),
        )

        intents: list[ActionIntent] = []
        priority = 20
        for account_id, account in ordered_accounts:
            for asset in ASSET_CLASSES:
                if sell[asset] <= 0:
                    continue
                sources = [h for h in account if asset_class(h) == asset]
                for source in self._sell_order(sources):
                    remaining = min(source.balance, sell[asset])
                    while remaining > 1e-9:
                        buy_asset = max(ASSET_CLASSES, key=lambda name: buy[name])
                        if buy[buy_asset] <= 1e-9:
                            break
                        amount = min(remaining, buy[buy_asset])
                        destination = self._holding_for(state, account, account_id, buy_asset, source.tax_type)
                        intents.append(
                            self.intent(
                                id=f"rebalance-{source.id}-{destination.id}-{context.month_index}",
                                kind="rebalance",
                                amount=amount,
                                source_holding_id=source.id,
                                target_holding_id=destination.id,
                                priority=priority,
                                label="Rebalance",
                            )
                        )
                        priority += 1
                        remaining -= amount
                        sell[asset] = max(0.0, sell[asset] - amount)
                        buy[buy_asset] = max(0.0, buy[buy_asset] - amount)
        self.explain.add_checkpoint("Trades", len(intents))
        return intents


class ConversionModule(StrategyModule):
    """Roth conversions sized once per year by the conversion solver, plus a fixed ladder."""

    module_id = "conversions"
    label = "Conversions"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        strategies = snapshot.scenario.strategies
        self.conversion = strategies.roth_conversion
        self.ladder = strategies.roth_ladder
        self.withdrawal = strategies.withdrawal
        self.early = strategies.early_retirement
        self.lots = strategies.taxable_lots
        self.tax = strategies.tax

    def _conversion_active(self, context: SimulationContext) -> bool:
        return self.conversion.enabled and _in_age_range(
            context.age, self.conversion.start_age, self.conversion.end_age
        )

    def plan_year(self, state: SimulationState, context: SimulationContext, plan: YearPlan) -> YearPlan:
        if not self._conversion_active(context):
            return replace(plan, conversion_amount=0.0, conversion_iterations=0)

        ledger = state.ledger
        policy = context.policies.tax_policy(context.date, self.tax.filing_status)
        target = 0.0
        if self.conversion.target_bracket_rate is not None:
            ceiling = bracket_ceiling(policy, self.conversion.target_bracket_rate)
            if ceiling is not None:
                # Fill the bracket measured in taxable income, so deductions add room.
                standard = policy.standard_deduction if self.tax.use_standard_deduction else 0.0
                target = max(0.0, ceiling + standard + ledger.deductions - ledger.ordinary_income)

        headroom = None
        if self.conversion.respect_irmaa:
            table = context.policies.irmaa_table(context.date, self.tax.filing_status)
            magi = ledger.ordinary_income + ledger.capital_gains + ledger.tax_exempt_income
            headroom = irmaa_headroom(table, magi)

        max_amount = None
        if self.conversion.max_conversion is not None:
            max_amount = context.inflate(self.conversion.max_conversion, context.start_date)

        def tax_fn(extra: float) -> float:
            return compute_year_tax(ledger, context, extra_ordinary=extra).total

        def funding_fn(amount: float) -> float:
            return estimate_ordinary_funding(
                state=state,
                amount=amount,
                on=context.date,
                age=context.age,
                withdrawal=self.withdrawal,
                early=self.early,
                lots=self.lots,
            )

        solution = solve_conversion(
            target=target,
            tax_fn=tax_fn,
            cash_available=state.cash_balance(),
            estimate_taxable_funding=funding_fn,
            irmaa_headroom=headroom,
            min_amount=context.inflate(self.conversion.min_conversion, context.start_date),
            max_amount=max_amount,
        )
        if not solution.converged:
            logger.debug("Conversion solver stopped after %d iterations at %.2f", solution.iterations, solution.amount)
        self.explain.add_input("Bracket target", target)
        self.explain.add_input("IRMAA headroom", "n/a" if headroom is None else headroom)
        self.explain.add_checkpoint("Planned conversion", solution.amount)
        self.explain.add_checkpoint("Solver iterations", solution.iterations)
        return replace(plan, conversion_amount=solution.amount, conversion_iterations=solution.iterations)

    def ladder_amount(self, context: SimulationContext) -> float:
        """Inflated ladder conversion when the age falls in the window shifted back by the lead time."""
        ladder = self.ladder
        if not ladder.enabled:
            return 0.0
        lead = ladder.lead_time_years
        start_age = None if ladder.start_age is None else max(0.0, ladder.start_age - lead)
        end_age = None if ladder.end_age is None else max(0.0, ladder.end_age - lead)
        if not _in_age_range(context.age, start_age, end_age):
            return 0.0
        base = ladder.annual_amount if ladder.annual_amount > 0 else ladder.target_after_tax_spending
        return context.inflate(base, context.start_date)

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        if context.plan_mode == "preview" or not context.is_start_of_year:
            return []

        ladder = self.ladder_amount(context)
        planned = context.year_plan.conversion_amount if self._conversion_active(context) else 0.0
        amount = max(ladder, planned)
        self.explain.add_checkpoint("Ladder amount", ladder)
        self.explain.add_checkpoint("Conversion total", amount)
        if amount <= 0:
            return []

        sources = sorted(
            (holding for holding in state.holdings_of("traditional") if holding.balance > 0),
            key=lambda holding: holding.balance,
            reverse=True,
        )
        roth = state.holdings_of("roth")
        if not sources or not roth:
            return []

        intents: list[ActionIntent] = []
        remaining = amount
        for offset, source in enumerate(sources):
            if remaining <= 0:
                break
            take = min(remaining, source.balance)
            intents.append(
                self.intent(
                    id=f"conversion-{context.year_index}-{source.id}",
                    kind="convert",
                    amount=take,
                    source_holding_id=source.id,
                    target_holding_id=roth[0].id,
                    priority=40 + offset,
                    label="Roth conversion",
                )
            )
            remaining -= take
        return intents


class RmdModule(StrategyModule):
    module_id = "rmd"
    label = "RMD"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.strategy = snapshot.scenario.strategies.rmd

    def required(self, state: SimulationState, context: SimulationContext) -> tuple[float, list[HoldingState]]:
        if not self.strategy.enabled or not context.is_start_of_year:
            return 0.0, []
        eligible = [holding for holding in state.holdings if holding.tax_type in self.strategy.account_types]
        balance = sum(holding.balance for holding in eligible)
        amount = compute_rmd_amount(
            balance,
            context.age,
            start_age=self.strategy.start_age,
            table=context.policies.rmd_table,
        )
        return amount, eligible

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        amount, _ = self.required(state, context)
        withholding = amount * self.strategy.withholding_rate
        if withholding <= 0:
            return []
        return [
            self.cashflow(
                id=f"rmd-withholding-{context.year_index}",
                label="RMD withholding",
                category="tax",
                cash=-withholding,
                tax_paid=withholding,
            )
        ]

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        amount, eligible = self.required(state, context)
        if amount <= 0:
            return []
        self.explain.add_input("Divisor", divisor_for_age(context.policies.rmd_table, context.age))
        self.explain.add_checkpoint("Required", amount)

        intents: list[ActionIntent] = []
        remaining = amount
        for offset, holding in enumerate(sorted(eligible, key=lambda h: h.balance, reverse=True)):
            if remaining <= 0:
                break
            take = min(remaining, holding.balance)
            if take <= 0:
                continue
            intents.append(
                self.intent(
                    id=f"rmd-{holding.id}-{context.year_index}",
                    kind="rmd",
                    amount=take,
                    source_holding_id=holding.id,
                    priority=30 + offset,
                    label="RMD",
                )
            )
            remaining -= take

        if self.strategy.excess_handling in ("taxable", "roth"):
            destinations = state.holdings_of(self.strategy.excess_handling)
            if destinations:
                destination = max(destinations, key=lambda holding: holding.balance)
                intents.append(
                    self.intent(
                        id=f"rmd-reinvest-{destination.id}-{context.year_index}",
                        kind="deposit",
                        amount=amount,
                        target_holding_id=destination.id,
                        from_cash=True,
                        priority=35,
                        label="Reinvest RMD",
                    )
                )
        return intents


class FundingModule(StrategyModule):
    """Cover a negative cash balance by drawing holdings in withdrawal order."""

    module_id = "funding"
    label = "Funding"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        strategies = snapshot.scenario.strategies
        self.withdrawal = strategies.withdrawal
        self.early = strategies.early_retirement
        self.lots = strategies.taxable_lots

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        cash = state.cash_balance()
        if cash >= 0:
            return []
        deficit = -cash
        draws = plan_withdrawals(
            state=state,
            amount=deficit,
            on=context.date,
            age=context.age,
            withdrawal=self.withdrawal,
            early=self.early,
            lots=self.lots,
        )
        self.explain.add_checkpoint("Deficit", deficit)
        if not draws:
            if not self.early.allow_penalty and penalized_types(context.age, use_72t=self.early.use_72t):
                # A sourceless draw is spread over every funded holding, penalized ones included.
                logger.debug(
                    "No penalty-free holding covers the %.2f deficit in month %d", deficit, context.month_index
                )
                self.explain.add_checkpoint("Left unfunded (penalties disallowed)", deficit)
                return []
            return [
                self.intent(
                    id="funding-cash-deficit",
                    kind="withdraw",
                    amount=deficit,
                    priority=100,
                    label="Cover cash deficit",
                )
            ]
        return [
            self.intent(
                id=f"funding-{draw.holding_id}",
                kind="withdraw",
                amount=draw.amount,
                source_holding_id=draw.holding_id,
                basis_only=draw.basis_only,
                priority=100 + offset,
                label="Cover cash deficit",
            )
            for offset, draw in enumerate(draws)
        ]

    def on_actions_resolved(
        self, records: list[ActionRecord], state: SimulationState, context: SimulationContext
    ) -> None:
        if state.cash_balance() < -0.005:
            state.deficit_months.append(context.month_index)
            logger.debug("Unfunded deficit of %.2f in month %d", -state.cash_balance(), context.month_index)
