"""Estate settlement in the final simulated month."""

from __future__ import annotations

import logging

from .modules import StrategyModule
from .schema import Beneficiary, Snapshot
from .state import (
    BeneficiaryShare,
    CashflowItem,
    HoldingState,
    LegacySummary,
    SimulationContext,
    SimulationState,
)
from .state_taxes import InheritanceTaxPolicy, compute_inheritance_tax, select_inheritance_tax_policy
from .tax_data import FUNERAL_COSTS

logger = logging.getLogger(__name__)


def normalized_shares(beneficiaries: list[Beneficiary]) -> list[float]:
    """Shares scaled to sum to one; an all-zero list splits equally."""
    if not beneficiaries:
        return []
    total = sum(max(0.0, beneficiary.share_pct) for beneficiary in beneficiaries)
    if total <= 0:
        return [1.0 / len(beneficiaries)] * len(beneficiaries)
    return [max(0.0, beneficiary.share_pct) / total for beneficiary in beneficiaries]


def asset_tags(holding: HoldingState) -> set[str]:
    tags = {holding.tax_type}
    if holding.holding_type == "real_estate":
        tags.add("real_estate")
    return tags


def inheritable_assets(state: SimulationState, policy: InheritanceTaxPolicy) -> float:
    """Cash plus the holdings the policy taxes."""
    total = state.cash_balance() if policy.taxes_asset({"cash"}) else 0.0
    for holding in state.holdings:
        if policy.taxes_asset(asset_tags(holding)):
            total += holding.balance
    return total


def taxable_gains(state: SimulationState, step_up: bool) -> float:
    if step_up:
        return 0.0
    return sum(max(0.0, holding.unrealized_gain) for holding in state.holdings_of("taxable"))


class DeathModule(StrategyModule):
    """Pays funeral, estate and inheritance tax, then splits what is left between beneficiaries."""

    module_id = "estate"
    label = "Estate"

    def __init__(self, snapshot: Snapshot, *, explain: bool = False) -> None:
        super().__init__(explain=explain)
        self.strategy = snapshot.scenario.strategies.death

    def funeral_cost(self, context: SimulationContext) -> float:
        if self.strategy.funeral_cost_override > 0:
            base = self.strategy.funeral_cost_override
        else:
            base = FUNERAL_COSTS.get(self.strategy.funeral_disposition, 0.0)
        return context.inflate(base, context.start_date)

    def _inheritance_taxes(
        self, state: SimulationState, context: SimulationContext, estate_costs: float, shares: list[float]
    ) -> list[float]:
        taxable_by_state: dict[str, tuple[InheritanceTaxPolicy, float] | None] = {}
        taxes: list[float] = []
        for beneficiary, share in zip(self.strategy.beneficiaries, shares):
            state_code = beneficiary.state_of_residence.lower()
            if state_code not in taxable_by_state:
                policy = None if state_code == "none" else select_inheritance_tax_policy(state_code, context.date.year)
                taxable_by_state[state_code] = (
                    None if policy is None else (policy, max(0.0, inheritable_assets(state, policy) - estate_costs))
                )
            entry = taxable_by_state[state_code]
            if entry is None:
                taxes.append(0.0)
                continue
            policy, taxable_estate = entry
            taxes.append(compute_inheritance_tax(taxable_estate * share, beneficiary.relationship, policy))
        return taxes

    def get_cashflows(self, state: SimulationState, context: SimulationContext) -> list[CashflowItem]:
        if not self.strategy.enabled or not context.is_final_month:
            return []

        gross_estate = state.total_balance()
        funeral = self.funeral_cost(context)
        estate_tax = max(0.0, gross_estate - self.strategy.estate_tax_exemption) * self.strategy.estate_tax_rate
        shares = normalized_shares(self.strategy.beneficiaries)
        inheritance_taxes = self._inheritance_taxes(state, context, funeral + estate_tax, shares)

        state.legacy = LegacySummary(
            date=context.iso_date,
            gross_estate=gross_estate,
            funeral_cost=funeral,
            estate_tax=estate_tax,
            inheritance_tax=sum(inheritance_taxes),
            beneficiaries=[
                BeneficiaryShare(
                    name=beneficiary.name,
                    share=share,
                    relationship=beneficiary.relationship,
                    state_of_residence=beneficiary.state_of_residence,
                    inheritance_tax=tax,
                )
                for beneficiary, share, tax in zip(self.strategy.beneficiaries, shares, inheritance_taxes)
            ],
        )
        self.explain.add_input("Funeral option", self.strategy.funeral_disposition)
        self.explain.add_checkpoint("Gross estate", gross_estate)
        self.explain.add_checkpoint("Funeral cost", funeral)
        self.explain.add_checkpoint("Estate tax", estate_tax)
        self.explain.add_checkpoint("Inheritance tax", state.legacy.inheritance_tax)

        cashflows = []
        if funeral > 0:
            cashflows.append(
                self.cashflow(id="estate-funeral", label="Funeral and disposition", category="event", cash=-funeral)
            )
        if estate_tax > 0:
            cashflows.append(self.cashflow(id="estate-tax", label="Estate tax", category="event", cash=-estate_tax))
        if state.legacy.inheritance_tax > 0:
            cashflows.append(
                self.cashflow(
                    id="estate-inheritance-tax",
                    label="Inheritance tax",
                    category="event",
                    cash=-state.legacy.inheritance_tax,
                )
            )
        return cashflows

    def on_end_of_year(self, state: SimulationState, context: SimulationContext) -> None:
        legacy = state.legacy
        if legacy is None or not context.is_final_month:
            return

        # Runs after the tax module, so the final year's balance due is known.
        legacy.pending_income_tax = sum(max(0.0, due) for due in state.pending_tax_due.values())
        legacy.net_estate = max(0.0, state.total_balance() - legacy.pending_income_tax)

        # Inheritance tax is borne by each beneficiary but was paid from the estate.
        distributable = legacy.net_estate + legacy.inheritance_tax
        pre_tax = sum(holding.balance for holding in state.holdings if holding.tax_type in ("traditional", "hsa"))
        gains = taxable_gains(state, self.strategy.taxable_step_up)
        for beneficiary, share in zip(self.strategy.beneficiaries, legacy.beneficiaries):
            share.gross_amount = distributable * share.share
            share.net_amount = max(0.0, share.gross_amount - share.inheritance_tax)
            share.deferred_tax = (
                pre_tax * share.share * beneficiary.assumed_ordinary_rate
                + gains * share.share * beneficiary.assumed_capital_gains_rate
            )
            share.net_after_deferred_tax = max(0.0, share.net_amount - share.deferred_tax)

        logger.debug(
            "Estate settled %s: gross=%.2f net=%.2f beneficiaries=%d",
            legacy.date,
            legacy.gross_estate,
            legacy.net_estate,
            len(legacy.beneficiaries),
        )
        self.explain.add_checkpoint("Pending income tax", legacy.pending_income_tax)
        self.explain.add_checkpoint("Net estate", legacy.net_estate)
        for share in legacy.beneficiaries:
            self.explain.add_checkpoint(f"{share.name} net share", share.net_amount)
