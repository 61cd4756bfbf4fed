"""Run state, per-step context, intents and ledger records."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from .inflation import inflate_amount
from .policy import PolicySet
from .schema import SimulationSettings, Snapshot

ACTION_KINDS = {"withdraw", "deposit", "convert", "rebalance", "rmd"}

CASHFLOW_CATEGORIES = {
    "work",
    "spending_need",
    "spending_want",
    "social_security",
    "pension",
    "healthcare",
    "event",
    "charitable",
    "tax",
    "other",
}


@dataclass(slots=True)
class BasisLot:
    date: str
    amount: float


@dataclass(slots=True)
class CashAccountState:
    id: str
    name: str
    balance: float
    interest_rate: float = 0.0


@dataclass(slots=True)
class HoldingState:
    id: str
    name: str
    account_id: str
    tax_type: str
    holding_type: str
    balance: float
    lots: list[BasisLot] = field(default_factory=list)
    return_rate: float = 0.0
    return_std_dev: float = 0.0

    @property
    def basis(self) -> float:
        return sum(lot.amount for lot in self.lots)

    @property
    def unrealized_gain(self) -> float:
        return self.balance - self.basis


@dataclass(slots=True)
class TaxLedger:
    """Tax-relevant totals for the current simulation year."""

    ordinary_income: float = 0.0
    capital_gains: float = 0.0
    deductions: float = 0.0
    tax_exempt_income: float = 0.0
    social_security: float = 0.0
    earned_income: float = 0.0
    penalties: float = 0.0
    tax_paid: float = 0.0
    conversions: float = 0.0
    withholding: float = 0.0


@dataclass(slots=True)
class GuardrailState:
    """Spending guardrail bookkeeping, captured when retirement spending begins."""

    target_balance: float | None = None
    target_date: str | None = None
    baseline_need: float = 0.0
    baseline_want: float = 0.0
    guyton_months_remaining: int = 0
    factor_sum: float = 0.0
    factor_count: int = 0
    factor_min: float = 1.0
    months_below: int = 0


@dataclass(slots=True)
class BeneficiaryShare:
    name: str
    share: float
    relationship: str
    state_of_residence: str
    inheritance_tax: float = 0.0
    gross_amount: float = 0.0
    net_amount: float = 0.0
    deferred_tax: float = 0.0
    net_after_deferred_tax: float = 0.0


@dataclass(slots=True)
class LegacySummary:
    """Estate settlement in the final month: costs paid, then what each beneficiary receives."""

    date: str
    gross_estate: float
    funeral_cost: float = 0.0
    estate_tax: float = 0.0
    inheritance_tax: float = 0.0
    pending_income_tax: float = 0.0
    net_estate: float = 0.0
    beneficiaries: list[BeneficiaryShare] = field(default_factory=list)


@dataclass(slots=True)
class SimulationState:
    """Mutable state owned by a single run."""

    cash_accounts: list[CashAccountState]
    holdings: list[HoldingState]
    ledger: TaxLedger = field(default_factory=TaxLedger)
    # Simulation year index -> settlement balance owed the following year.
    pending_tax_due: dict[int, float] = field(default_factory=dict)
    contributions_ytd: dict[str, float] = field(default_factory=dict)
    magi_history: dict[int, float] = field(default_factory=dict)
    tax_history: dict[int, float] = field(default_factory=dict)
    guardrails: GuardrailState = field(default_factory=GuardrailState)
    deficit_months: list[int] = field(default_factory=list)
    initial_investment_balance: float = 0.0
    legacy: LegacySummary | None = None

    def cash_balance(self) -> float:
        return sum(account.balance for account in self.cash_accounts)

    def investment_balance(self) -> float:
        return sum(holding.balance for holding in self.holdings)

    def total_balance(self) -> float:
        return self.cash_balance() + self.investment_balance()

    def holding(self, holding_id: str | None) -> HoldingState | None:
        if holding_id is None:
            return None
        for holding in self.holdings:
            if holding.id == holding_id:
                return holding
        return None

    def holdings_of(self, tax_type: str) -> list[HoldingState]:
        return [holding for holding in self.holdings if holding.tax_type == tax_type]

    def adjust_cash(self, amount: float) -> None:
        """Post a cash delta to the primary (first) cash account."""
        self.cash_accounts[0].balance += amount


@dataclass(slots=True, frozen=True)
class YearPlan:
    conversion_amount: float = 0.0
    conversion_iterations: int = 0


@dataclass(slots=True, frozen=True)
class SimulationContext:
    """Read-only view of one month step."""

    snapshot: Snapshot
    settings: SimulationSettings
    policies: PolicySet
    start_date: date
    date: date
    month_index: int
    year_index: int
    age: float
    is_start_of_year: bool
    is_end_of_year: bool
    is_final_month: bool = False
    plan_mode: str = "apply"
    year_plan: YearPlan = field(default_factory=YearPlan)

    @property
    def iso_date(self) -> str:
        return self.date.isoformat()

    @property
    def filing_status(self) -> str:
        return self.snapshot.scenario.strategies.tax.filing_status

    def inflation_rate(self, inflation_type: str) -> float:
        return self.snapshot.scenario.strategies.inflation.rate_for(inflation_type)

    def inflate(self, amount: float, from_date: date | str | None, inflation_type: str = "cpi") -> float:
        """Carry ``amount`` from ``from_date`` (default: run start) to this step's date."""
        assumptions = self.snapshot.scenario.strategies.inflation
        if inflation_type == "none":
            return amount
        index = assumptions.index if inflation_type == "cpi" else None
        return inflate_amount(
            amount,
            from_date or self.start_date,
            self.date,
            assumptions.rate_for(inflation_type),
            index=index,
            index_start=assumptions.index_start,
        )


@dataclass(slots=True)
class ActionIntent:
    id: str
    kind: str
    amount: float
    source_holding_id: str | None = None
    target_holding_id: str | None = None
    priority: int = 0
    label: str = ""
    tax_treatment: str | None = None
    from_cash: bool = False
    basis_only: bool = False
    module_id: str = ""


@dataclass(slots=True)
class ActionRecord:
    intent: ActionIntent
    resolved_amount: float
    month_index: int = 0
    realized_gain: float = 0.0
    ordinary_income: float = 0.0
    tax_exempt_income: float = 0.0
    penalty: float = 0.0
    cash_delta: float = 0.0
    source_tax_type: str | None = None
    target_tax_type: str | None = None


@dataclass(slots=True)
class CashflowItem:
    id: str
    label: str
    category: str
    cash: float
    ordinary_income: float = 0.0
    capital_gains: float = 0.0
    deductions: float = 0.0
    tax_exempt_income: float = 0.0
    social_security: float = 0.0
    earned_income: float = 0.0
    tax_paid: float = 0.0
    module_id: str = ""


@dataclass(slots=True)
class MarketReturn:
    id: str
    tax_type: str
    amount: float
    rate: float


@dataclass(slots=True)
class CashflowSeriesEntry:
    month_index: int
    key: str
    label: str
    value: float
    bucket: str


@dataclass(slots=True)
class MonthRecord:
    month_index: int
    date: str
    cash_balance: float
    investment_balance: float
    total_balance: float
    age: float = 0.0
    income: float = 0.0
    spending: float = 0.0
    contributions: float = 0.0
    withdrawals: float = 0.0
    taxes: float = 0.0
    ordinary_income: float = 0.0
    capital_gains: float = 0.0
    deductions: float = 0.0


@dataclass(slots=True)
class YearRecord:
    year_index: int
    year: int
    cash_balance: float = 0.0
    investment_balance: float = 0.0
    total_balance: float = 0.0
    income: float = 0.0
    spending: float = 0.0
    contributions: float = 0.0
    withdrawals: float = 0.0
    taxes: float = 0.0
    ordinary_income: float = 0.0
    capital_gains: float = 0.0
    deductions: float = 0.0
    tax_liability: float = 0.0
    magi: float = 0.0
