"""Year tax: monthly withholding, year-end settlement and next-year payment."""

from __future__ import annotations

from dataclasses import dataclass
import logging

from .modules import StrategyModule
from .payroll import PayrollTax, compute_payroll_tax
from .schema import Snapshot
from .state import CashflowItem, SimulationContext, SimulationState, TaxLedger
from .state_taxes import compute_state_tax, select_state_tax_policy
from .tax import TaxComputation, compute_tax

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class YearTax:
    income_tax: TaxComputation
    payroll: PayrollTax
    penalties: float

    @property
    def total(self) -> float:
        return self.income_tax.tax_owed + self.payroll.total + self.penalties


def compute_year_tax(
    ledger: TaxLedger,
    context: SimulationContext,
    *,
    extra_ordinary: float = 0.0,
    scale: float = 1.0,
) -> YearTax:
    """Tax on ``ledger`` (times ``scale``, plus ``extra_ordinary``) under the policies in force at the step date."""
    strategy = context.snapshot.scenario.strategies.tax
    status = strategy.filing_status

    state_tax_fn = None
    state_tax_rate = 0.0
    if strategy.state_code == "none":
        state_tax_rate = strategy.state_tax_rate
    else:
        state_policy = select_state_tax_policy(strategy.state_code, context.date.year, status)
        if state_policy is not None:
            use_standard = strategy.use_standard_deduction

            def state_tax_fn(income: float) -> float:
                return compute_state_tax(income, state_policy, use_standard_deduction=use_standard)

    income_tax = compute_tax(
        ordinary_income=ledger.ordinary_income * scale + extra_ordinary,
        capital_gains=ledger.capital_gains * scale,
        deductions=ledger.deductions * scale,
        tax_exempt_income=ledger.tax_exempt_income * scale,
        policy=context.policies.tax_policy(context.date, status),
        use_standard_deduction=strategy.use_standard_deduction,
        apply_capital_gains_rates=strategy.apply_capital_gains_rates,
        social_security_benefits=ledger.social_security * scale,
        ss_bracket=context.policies.ss_bracket(context.date, status),
        state_tax_rate=state_tax_rate,
        state_tax_fn=state_tax_fn,
    )
    payroll = compute_payroll_tax(ledger.earned_income * scale, context.policies.payroll_policy(context.date, status))
    return YearTax(income_tax=income_tax, payroll=payroll, penalties=ledger.penalties * scale)


def _month_totals(cashflows: list[CashflowItem]) -> TaxLedger:
    totals = TaxLedger()
    for flow in cashflows:
        totals.ordinary_income += flow.ordinary_income
        totals.capital_gains += flow.capital_gains
        totals.deductions += flow.deductions
        totals.tax_exempt_income += flow.tax_exempt_income
        totals.social_security += flow.social_security
        totals.earned_income += flow.earned_income
        totals.tax_paid += flow.tax_paid
    return totals


class TaxModule(StrategyModule):
    module_id = "taxes"
    label = "Taxes"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.strategy = snapshot.scenario.strategies.tax

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        if context.date.month != self.strategy.payment_month:
            return []
        cashflows: list[CashflowItem] = []
        for year_index in sorted(state.pending_tax_due):
            if year_index >= context.year_index:
                continue
            due = state.pending_tax_due.pop(year_index)
            if due == 0:
                continue
            cashflows.append(
                self.cashflow(
                    id=f"tax-settlement-{year_index}",
                    label="Tax payment" if due > 0 else "Tax refund",
                    category="tax",
                    cash=-due,
                )
            )
            self.explain.add_checkpoint(f"Settled year {year_index}", due)
        return cashflows

    def on_after_cashflows(
        self, cashflows: list[CashflowItem], state: SimulationState, context: SimulationContext
    ) -> list[CashflowItem]:
        if not self.strategy.withholding_enabled:
            return []
        month = _month_totals(cashflows)
        if state.ledger.earned_income + month.earned_income <= 0:
            return []

        ytd = TaxLedger(
            ordinary_income=state.ledger.ordinary_income + month.ordinary_income,
            capital_gains=state.ledger.capital_gains + month.capital_gains,
            deductions=state.ledger.deductions + month.deductions,
            tax_exempt_income=state.ledger.tax_exempt_income + month.tax_exempt_income,
            social_security=state.ledger.social_security + month.social_security,
            earned_income=state.ledger.earned_income + month.earned_income,
            penalties=state.ledger.penalties,
        )
        months_elapsed = context.date.month
        projected = compute_year_tax(ytd, context, scale=12.0 / months_elapsed).total
        accrued = projected * months_elapsed / 12.0
        withholding = accrued - state.ledger.tax_paid - month.tax_paid
        self.explain.add_input("Months elapsed", months_elapsed)
        self.explain.add_checkpoint("Projected annual tax", projected)
        self.explain.add_checkpoint("Withholding", max(0.0, withholding))
        if withholding <= 0.005:
            return []
        state.ledger.withholding += withholding
        return [
            self.cashflow(
                id=f"tax-withholding-{context.month_index}",
                label="Tax withholding",
                category="tax",
                cash=-withholding,
                tax_paid=withholding,
            )
        ]

    def on_end_of_year(self, state: SimulationState, context: SimulationContext) -> None:
        year_tax = compute_year_tax(state.ledger, context)
        liability = year_tax.total
        due = liability - state.ledger.tax_paid
        state.pending_tax_due[context.year_index] = state.pending_tax_due.get(context.year_index, 0.0) + due
        state.magi_history[context.year_index] = year_tax.income_tax.magi
        state.tax_history[context.year_index] = liability
        logger.debug(
            "Settled year %d: liability=%.2f paid=%.2f due=%.2f magi=%.2f",
            context.year_index,
            liability,
            state.ledger.tax_paid,
            due,
            year_tax.income_tax.magi,
        )
        self.explain.add_checkpoint("Year liability", liability)
        self.explain.add_checkpoint("Due next year", due)
