"""Month-stepping orchestrator."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date
import logging

from .cashflow_modules import (
    CharitableModule,
    EventModule,
    PensionModule,
    SocialSecurityModule,
    SpendingModule,
    WorkModule,
)
from .dates import add_months, age_at, months_between, parse_iso
from .estate import DeathModule
from .explain import ExplainTrace
from .healthcare import HealthcareModule
from .modules import StrategyModule
from .policy import PolicySet
from .portfolio_modules import (
    CashBufferModule,
    ConversionModule,
    FundingModule,
    RebalancingModule,
    RmdModule,
)
from .resolver import resolve_actions
from .returns import MarketModel, ReturnsModule, resolve_seed
from .schema import SimulationSettings, Snapshot
from .state import (
    ActionRecord,
    BasisLot,
    CashAccountState,
    CashflowItem,
    CashflowSeriesEntry,
    HoldingState,
    LegacySummary,
    MonthRecord,
    SimulationContext,
    SimulationState,
    TaxLedger,
    YearPlan,
    YearRecord,
)
from .tax_module import TaxModule

logger = logging.getLogger(__name__)

# Registration order is part of the contract: later modules see earlier effects.
MODULE_TYPES: tuple[type[StrategyModule], ...] = (
    SpendingModule,
    EventModule,
    PensionModule,
    HealthcareModule,
    CharitableModule,
    WorkModule,
    SocialSecurityModule,
    CashBufferModule,
    RebalancingModule,
    ConversionModule,
    RmdModule,
    TaxModule,
    FundingModule,
    DeathModule,
)

DEFAULT_END_AGE = 95


@dataclass(slots=True)
class SimulationResult:
    seed: int
    start_date: str
    months: int
    monthly: list[MonthRecord] = field(default_factory=list)
    yearly: list[YearRecord] = field(default_factory=list)
    actions: list[ActionRecord] = field(default_factory=list)
    cashflow_series: list[CashflowSeriesEntry] = field(default_factory=list)
    explain: list[ExplainTrace] = field(default_factory=list)
    magi_history: dict[int, float] = field(default_factory=dict)
    tax_history: dict[int, float] = field(default_factory=dict)
    pending_tax_due: dict[int, float] = field(default_factory=dict)
    deficit_months: list[int] = field(default_factory=list)
    legacy: LegacySummary | None = None
    final_state: SimulationState | None = None


def build_modules(snapshot: Snapshot, settings: SimulationSettings) -> list[StrategyModule]:
    modules: list[StrategyModule] = [module_type(snapshot, explain=settings.explain) for module_type in MODULE_TYPES]
    modules.append(ReturnsModule(explain=settings.explain))
    return modules


def build_state(snapshot: Snapshot) -> SimulationState:
    if not snapshot.cash_accounts:
        raise ValueError("snapshot must contain at least one cash account")
    holdings = [
        HoldingState(
            id=holding.id,
            name=holding.name,
            account_id=holding.account_id,
            tax_type=holding.tax_type,
            holding_type=holding.holding_type,
            balance=holding.balance,
            lots=[BasisLot(date=entry.date, amount=entry.amount) for entry in holding.cost_basis_entries],
            return_rate=holding.return_rate,
            return_std_dev=holding.return_std_dev,
        )
        for holding in snapshot.holdings
    ]
    state = SimulationState(
        cash_accounts=[
            CashAccountState(
                id=account.id,
                name=account.name,
                balance=account.balance,
                interest_rate=account.interest_rate,
            )
            for account in snapshot.cash_accounts
        ],
        holdings=holdings,
    )
    state.initial_investment_balance = state.investment_balance()
    return state


def resolve_run_window(snapshot: Snapshot, settings: SimulationSettings) -> tuple[date, int]:
    """Start date and step count; runs to the person's end age when months is unset."""
    start = parse_iso(settings.start_date)
    if start is None:
        raise ValueError("a valid start_date is required (snapshot settings or --start-date)")
    if settings.months is not None:
        if settings.months < 1:
            raise ValueError("months must be at least 1")
        return start, settings.months

    person = snapshot.scenario.person
    birth = parse_iso(person.birth_date)
    end_age = person.life_expectancy or DEFAULT_END_AGE
    if birth is None:
        return start, end_age * 12
    end = add_months(birth, end_age * 12)
    return start, max(1, months_between(start, end))


def _month_totals(cashflows: list[CashflowItem], records: list[ActionRecord]) -> dict[str, float]:
    totals = {
        "income": 0.0,
        "spending": 0.0,
        "contributions": 0.0,
        "withdrawals": 0.0,
        "taxes": 0.0,
        "ordinary_income": 0.0,
        "capital_gains": 0.0,
        "deductions": 0.0,
    }
    for flow in cashflows:
        if flow.category == "tax":
            totals["taxes"] -= flow.cash
        elif flow.cash > 0:
            totals["income"] += flow.cash
        elif flow.category != "work":
            # Negative work items are deferrals, counted as contributions below.
            totals["spending"] -= flow.cash
        totals["ordinary_income"] += flow.ordinary_income
        totals["capital_gains"] += flow.capital_gains
        totals["deductions"] += flow.deductions
    for record in records:
        kind = record.intent.kind
        if kind == "deposit":
            totals["contributions"] += record.resolved_amount
        elif kind in ("withdraw", "rmd"):
            totals["withdrawals"] += record.resolved_amount
        totals["ordinary_income"] += record.ordinary_income
        totals["capital_gains"] += record.realized_gain
    return totals


def _post_cashflows(state: SimulationState, cashflows: list[CashflowItem]) -> None:
    ledger = state.ledger
    net = 0.0
    for flow in cashflows:
        net += flow.cash
        ledger.ordinary_income += flow.ordinary_income
        ledger.capital_gains += flow.capital_gains
        ledger.deductions += flow.deductions
        ledger.tax_exempt_income += flow.tax_exempt_income
        ledger.social_security += flow.social_security
        ledger.earned_income += flow.earned_income
        ledger.tax_paid += flow.tax_paid
    state.adjust_cash(net)


def _year_record(year_index: int, months: list[MonthRecord], state: SimulationState) -> YearRecord:
    last = months[-1]
    record = YearRecord(
        year_index=year_index,
        year=parse_iso(months[0].date).year,
        cash_balance=last.cash_balance,
        investment_balance=last.investment_balance,
        total_balance=last.total_balance,
        tax_liability=state.tax_history.get(year_index, 0.0),
        magi=state.magi_history.get(year_index, 0.0),
    )
    for month in months:
        record.income += month.income
        record.spending += month.spending
        record.contributions += month.contributions
        record.withdrawals += month.withdrawals
        record.taxes += month.taxes
        record.ordinary_income += month.ordinary_income
        record.capital_gains += month.capital_gains
        record.deductions += month.deductions
    return record


def run_simulation(snapshot: Snapshot, settings: SimulationSettings | None = None) -> SimulationResult:
    """Run one simulation over the snapshot.

    ``settings`` replaces ``snapshot.settings`` wholesale when given; callers
    merge overrides beforehand.
    """
    settings = settings or snapshot.settings
    start, months = resolve_run_window(snapshot, settings)
    seed = resolve_seed(snapshot, settings, start.isoformat())

    state = build_state(snapshot)
    modules = build_modules(snapshot, settings)
    market = MarketModel(snapshot, seed)
    policies = PolicySet(snapshot.policies, snapshot.scenario.strategies.inflation)
    strategies = snapshot.scenario.strategies
    penalty_rate = strategies.early_retirement.penalty_rate
    use_72t = strategies.early_retirement.use_72t

    result = SimulationResult(seed=seed, start_date=start.isoformat(), months=months, final_state=state)
    year_plan = YearPlan()
    year_months: list[MonthRecord] = []

    for month_index in range(months):
        current = add_months(start, month_index)
        context = SimulationContext(
            snapshot=snapshot,
            settings=settings,
            policies=policies,
            start_date=start,
            date=current,
            month_index=month_index,
            year_index=current.year - start.year,
            age=age_at(snapshot.scenario.person.birth_date, current),
            is_start_of_year=current.month == 1 or month_index == 0,
            is_end_of_year=current.month == 12 or month_index == months - 1,
            is_final_month=month_index == months - 1,
            plan_mode=settings.plan_mode,
            year_plan=year_plan,
        )

        # Step 1: Year planning, once per calendar year (or partial first year).
        if context.is_start_of_year:
            year_plan = YearPlan()
            for module in modules:
                year_plan = module.plan_year(state, context, year_plan)
            context = replace(context, year_plan=year_plan)

        # Step 2: Cashflows in registration order.
        cashflows: list[CashflowItem] = []
        for module in modules:
            cashflows.extend(module.get_cashflows(state, context))

        # Step 3: Reactions to the month's cashflows (withholding).
        extra: list[CashflowItem] = []
        for module in modules:
            extra.extend(module.on_after_cashflows(cashflows, state, context))
        cashflows.extend(extra)

        # Step 4: Post net cash and tax attribution.
        _post_cashflows(state, cashflows)

        # Step 5: Intents and resolution.
        intents = []
        for module in modules:
            intents.extend(module.get_action_intents(state, context))
        records = resolve_actions(state, context, intents, penalty_rate=penalty_rate, use_72t=use_72t)
        result.actions.extend(records)

        # Step 6: Post-resolution reactions.
        for module in modules:
            module.on_actions_resolved(records, state, context)

        # Step 7: Market and interest growth.
        returns = market.apply(state, context)

        # Step 8: Growth reporting.
        for module in modules:
            module.on_market_returns(returns, state, context)

        # Step 9: Year-end settlement and ledger reset.
        if context.is_end_of_year:
            for module in modules:
                module.on_end_of_year(state, context)

        for module in modules:
            result.cashflow_series.extend(
                module.cashflow_series(
                    cashflows=[flow for flow in cashflows if flow.module_id == module.module_id],
                    records=[record for record in records if record.intent.module_id == module.module_id],
                    returns=returns,
                    context=context,
                )
            )
            trace = module.explain.collect(module.module_id, month_index)
            if trace is not None:
                result.explain.append(trace)

        totals = _month_totals(cashflows, records)
        month_record = MonthRecord(
            month_index=month_index,
            date=current.isoformat(),
            cash_balance=state.cash_balance(),
            investment_balance=state.investment_balance(),
            total_balance=state.total_balance(),
            age=context.age,
            **totals,
        )
        result.monthly.append(month_record)
        year_months.append(month_record)

        if context.is_end_of_year:
            result.yearly.append(_year_record(context.year_index, year_months, state))
            year_months = []
            state.ledger = TaxLedger()
            state.contributions_ytd.clear()

    result.magi_history = dict(state.magi_history)
    result.tax_history = dict(state.tax_history)
    result.pending_tax_due = dict(state.pending_tax_due)
    result.deficit_months = list(state.deficit_months)
    result.legacy = state.legacy
    if result.deficit_months:
        logger.debug("%d months ended with unfunded cash deficits", len(result.deficit_months))
    return result
