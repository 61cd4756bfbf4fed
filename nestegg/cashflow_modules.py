"""Modules that turn scenario inputs into monthly cashflow items."""

from __future__ import annotations

import logging

from .dates import add_months, is_same_month, is_within_range, months_between, parse_iso
from .modules import StrategyModule
from .schema import HealthPoint, Snapshot, WorkPeriod
from .social_security import BenefitEstimate, estimate_benefit
from .state import ActionIntent, CashflowItem, SimulationContext, SimulationState
from .tax_data import INFLATION_TYPES, QCD_AGE

logger = logging.getLogger(__name__)

# Balances are discounted by the tax still owed on them before guardrails compare them.
TAX_DISCOUNT = {"traditional": 0.85, "taxable": 0.95, "roth": 1.0, "hsa": 1.0}


def _attribute(flow: CashflowItem, amount: float, tax_treatment: str) -> None:
    if tax_treatment == "ordinary":
        flow.ordinary_income = amount
    elif tax_treatment == "capital_gains":
        flow.capital_gains = amount
    elif tax_treatment == "tax_exempt":
        flow.tax_exempt_income = amount


def discounted_balance(state: SimulationState) -> float:
    holdings = sum(holding.balance * TAX_DISCOUNT.get(holding.tax_type, 1.0) for holding in state.holdings)
    return state.cash_balance() + holdings


def health_factor(health: float, points: list[HealthPoint]) -> float:
    """Interpolate a want-spending factor from portfolio health (0 below the first point)."""
    if not points:
        return 1.0
    ordered = sorted(points, key=lambda point: point.health)
    if health <= ordered[0].health:
        return 0.0
    if health >= ordered[-1].health:
        return 1.0
    for lower, upper in zip(ordered, ordered[1:]):
        if health <= upper.health:
            span = max(1e-9, upper.health - lower.health)
            ratio = (health - lower.health) / span
            return min(1.0, max(0.0, lower.factor + (upper.factor - lower.factor) * ratio))
    return 1.0


class SpendingModule(StrategyModule):
    module_id = "spending"
    label = "Spending"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.items = snapshot.spending_items
        self.withdrawal = snapshot.scenario.strategies.withdrawal
        self.has_work = bool(snapshot.work_periods)
        ends = [parse_iso(period.end_date) for period in snapshot.work_periods]
        ends = [end for end in ends if end is not None]
        # Guardrails start the month after the last work period ends.
        self.retirement_start = add_months(max(ends).replace(day=1), 1) if ends else None

    def _guardrail_factor(
        self, state: SimulationState, context: SimulationContext, total_need: float, total_want: float
    ) -> tuple[float, float | None]:
        strategy = self.withdrawal.guardrail_strategy
        guardrails = state.guardrails
        balance = discounted_balance(state)
        health = None
        factor = 1.0

        if strategy == "legacy":
            pct = self.withdrawal.guardrail_pct
            target = guardrails.target_balance if guardrails.target_balance is not None else balance
            if pct > 0 and balance < target * (1.0 - pct):
                factor = 1.0 - pct
        elif strategy == "cap_wants":
            limit = self.withdrawal.guardrail_withdrawal_rate_limit
            if total_want > 0 and limit > 0:
                available = balance * limit / 12.0 - total_need
                factor = min(1.0, max(0.0, available / total_want))
        elif strategy == "portfolio_health":
            target = guardrails.target_balance if guardrails.target_balance is not None else balance
            inflated = context.inflate(target, guardrails.target_date or context.date)
            health = balance / inflated if inflated > 0 else 1.0
            factor = health_factor(health, self.withdrawal.guardrail_health_points)
        elif strategy == "guyton":
            baseline_balance = guardrails.target_balance if guardrails.target_balance is not None else balance
            baseline_spend = guardrails.baseline_need + guardrails.baseline_want
            baseline_rate = baseline_spend / baseline_balance * 12.0 if baseline_balance > 0 else 0.0
            current_rate = (total_need + total_want) / balance * 12.0 if balance > 0 else 0.0
            if baseline_rate > 0 and current_rate > baseline_rate * (1.0 + self.withdrawal.guyton_trigger_rate_increase):
                guardrails.guyton_months_remaining = max(
                    guardrails.guyton_months_remaining, self.withdrawal.guyton_duration_months
                )
            if guardrails.guyton_months_remaining > 0:
                factor = min(1.0, max(0.0, 1.0 - self.withdrawal.guyton_applied_pct))
                guardrails.guyton_months_remaining -= 1
        return factor, health

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        active = []
        for item in self.items:
            if not is_within_range(context.date, item.start_date, item.end_date):
                continue
            start = item.start_date or context.start_date
            need = context.inflate(item.need_amount, start, item.inflation_type)
            want = context.inflate(item.want_amount, start, item.inflation_type)
            active.append((item, need, want))
        total_need = sum(need for _, need, _ in active)
        total_want = sum(want for _, _, want in active)

        guardrails = state.guardrails
        retirement_start = self.retirement_start or context.start_date
        if guardrails.target_date is None and (
            is_same_month(context.date, retirement_start) or context.date > retirement_start
        ):
            guardrails.target_date = context.iso_date
            guardrails.target_balance = discounted_balance(state)
            guardrails.baseline_need = total_need
            guardrails.baseline_want = total_want

        enabled = not self.has_work or context.date >= retirement_start
        factor, health = (1.0, None)
        if enabled:
            factor, health = self._guardrail_factor(state, context, total_need, total_want)
        guardrails.factor_sum += factor
        guardrails.factor_count += 1
        guardrails.factor_min = min(guardrails.factor_min, factor)
        if factor < 1.0:
            guardrails.months_below += 1

        cashflows: list[CashflowItem] = []
        for item, need, want in active:
            want *= factor
            if need > 0:
                cashflows.append(
                    self.cashflow(
                        id=f"{item.id}-{context.month_index}-need",
                        label=item.name,
                        category="spending_need",
                        cash=-need,
                        deductions=need if item.is_pre_tax else 0.0,
                    )
                )
            if want > 0:
                cashflows.append(
                    self.cashflow(
                        id=f"{item.id}-{context.month_index}-want",
                        label=item.name,
                        category="spending_want",
                        cash=-want,
                        deductions=want if item.is_pre_tax else 0.0,
                    )
                )

        self.explain.add_input("Line items", len(self.items))
        self.explain.add_input("Guardrail strategy", self.withdrawal.guardrail_strategy)
        self.explain.add_input("Guardrails enabled", enabled)
        self.explain.add_input("Guardrail health", "n/a" if health is None else health)
        self.explain.add_input("Guardrail factor", factor)
        self.explain.add_checkpoint("Need total", total_need)
        self.explain.add_checkpoint("Want total", total_want * factor)
        return cashflows


class EventModule(StrategyModule):
    module_id = "events"
    label = "Events"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.events = snapshot.events

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        cashflows: list[CashflowItem] = []
        for event in self.events:
            if not is_same_month(context.date, event.date):
                continue
            amount = context.inflate(event.amount, context.start_date, event.inflation_type)
            flow = self.cashflow(
                id=f"{event.id}-{context.month_index}",
                label=event.name,
                category="event",
                cash=amount,
            )
            # Only inflows carry income.
            if amount > 0:
                _attribute(flow, amount, event.tax_treatment)
            cashflows.append(flow)
        return cashflows


class PensionModule(StrategyModule):
    module_id = "pensions"
    label = "Pensions"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.pensions = snapshot.pensions

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        cashflows: list[CashflowItem] = []
        for pension in self.pensions:
            if not is_within_range(context.date, pension.start_date, pension.end_date):
                continue
            amount = context.inflate(pension.monthly_amount, pension.start_date, pension.inflation_type)
            if amount <= 0:
                continue
            flow = self.cashflow(
                id=f"{pension.id}-{context.month_index}",
                label=pension.name,
                category="pension",
                cash=amount,
            )
            _attribute(flow, amount, pension.tax_treatment)
            cashflows.append(flow)
        self.explain.add_input("Pensions", len(self.pensions))
        self.explain.add_checkpoint("Total payout", sum(flow.cash for flow in cashflows))
        return cashflows


class CharitableModule(StrategyModule):
    """Monthly giving; at QCD age part of it is sent straight from a traditional holding."""

    module_id = "charitable"
    label = "Charitable"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.strategy = snapshot.scenario.strategies.charitable

    def _active(self, context: SimulationContext) -> bool:
        return self.strategy.annual_giving > 0 and is_within_range(
            context.date, self.strategy.start_date, self.strategy.end_date
        )

    def _qcd_annual(self) -> float:
        if not self.strategy.use_qcd:
            return 0.0
        if self.strategy.qcd_annual_amount > 0:
            return min(self.strategy.annual_giving, self.strategy.qcd_annual_amount)
        return self.strategy.annual_giving

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        if not self._active(context):
            return []
        monthly = self.strategy.annual_giving / 12.0
        deduction = monthly
        if context.age >= QCD_AGE:
            deduction = max(0.0, monthly - self._qcd_annual() / 12.0)
        return [
            self.cashflow(
                id=f"charitable-{context.month_index}",
                label="Charitable giving",
                category="charitable",
                cash=-monthly,
                deductions=deduction,
            )
        ]

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        if not self._active(context) or context.age < QCD_AGE:
            return []
        qcd = self._qcd_annual() / 12.0
        sources = sorted(state.holdings_of("traditional"), key=lambda holding: holding.balance, reverse=True)
        if qcd <= 0 or not sources:
            return []
        return [
            self.intent(
                id=f"qcd-{context.month_index}",
                kind="withdraw",
                amount=qcd,
                source_holding_id=sources[0].id,
                tax_treatment="tax_exempt",
                priority=40,
                label="QCD",
            )
        ]


class WorkModule(StrategyModule):
    """Salary, bonus and workplace retirement contributions."""

    module_id = "work"
    label = "Work"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.periods = snapshot.work_periods
        self.holding_types = {holding.id: holding.tax_type for holding in snapshot.holdings}

    def _active(self, context: SimulationContext) -> list[WorkPeriod]:
        return [period for period in self.periods if is_within_range(context.date, period.start_date, period.end_date)]

    def _deferral(self, period: WorkPeriod, state: SimulationState, context: SimulationContext) -> tuple[float, float]:
        tax_type = self.holding_types.get(period.contribution_holding_id or "")
        if tax_type is None:
            return 0.0, 0.0
        pct = period.contribution_pct or period.match_pct_cap
        employee = period.salary * pct / 12.0
        limit = context.policies.contribution_limit(context.date, tax_type)
        if limit is not None:
            employee = min(employee, max(0.0, limit - state.contributions_ytd.get(tax_type, 0.0)))
        employer = period.salary * min(pct, period.match_pct_cap) * period.match_ratio / 12.0
        return employee, employer

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        cashflows: list[CashflowItem] = []
        for period in self._active(context):
            income = (period.salary + period.bonus) / 12.0
            if income > 0:
                cashflows.append(
                    self.cashflow(
                        id=f"{period.id}-{context.month_index}-income",
                        label=period.name,
                        category="work",
                        cash=income,
                        ordinary_income=income,
                        earned_income=income,
                    )
                )
            employee, _ = self._deferral(period, state, context)
            if employee > 0:
                pre_tax = self.holding_types.get(period.contribution_holding_id or "") in ("traditional", "hsa")
                cashflows.append(
                    self.cashflow(
                        id=f"{period.id}-{context.month_index}-deferral",
                        label=f"{period.name} deferral",
                        category="work",
                        cash=-employee,
                        deductions=employee if pre_tax else 0.0,
                    )
                )
        return cashflows

    def get_action_intents(self, state: SimulationState, context: SimulationContext) -> list[ActionIntent]:
        intents: list[ActionIntent] = []
        for offset, period in enumerate(self._active(context)):
            employee, employer = self._deferral(period, state, context)
            if employee + employer <= 0:
                continue
            intents.append(
                self.intent(
                    id=f"{period.id}-{context.month_index}-contrib",
                    kind="deposit",
                    amount=employee + employer,
                    target_holding_id=period.contribution_holding_id,
                    priority=10 + offset,
                    label=f"{period.name} contribution",
                )
            )
        return intents


class SocialSecurityModule(StrategyModule):
    module_id = "social_security"
    label = "Social Security"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.person = snapshot.scenario.person
        self.estimate: BenefitEstimate | None = None
        social = snapshot.social_security
        if social is not None and social.enabled:
            inflation = snapshot.scenario.strategies.inflation
            self.estimate = estimate_benefit(
                birth_date=self.person.birth_date,
                social_security=social,
                work_periods=snapshot.work_periods,
                spending_items=snapshot.spending_items,
                tables=snapshot.policies,
                rate_for={kind: inflation.rate_for(kind) for kind in INFLATION_TYPES},
            )
            if self.estimate is None:
                logger.warning("Social Security estimate unavailable for %s", self.person.name)

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        if self.estimate is None or context.date < self.estimate.claim_date:
            return []
        months = months_between(self.estimate.claim_date, context.date)
        benefit = self.estimate.monthly_benefit * (1.0 + context.inflation_rate("cpi")) ** (months / 12.0)
        self.explain.add_input("Claim date", self.estimate.claim_date.isoformat())
        self.explain.add_checkpoint("Benefit", benefit)
        if benefit <= 0:
            return []
        return [
            self.cashflow(
                id=f"social-security-{context.month_index}",
                label=f"{self.person.name} Social Security",
                category="social_security",
                cash=benefit,
                social_security=benefit,
            )
        ]
