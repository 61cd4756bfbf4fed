from datetime import date

import pytest

from nestegg.cashflow_modules import (
    CharitableModule,
    EventModule,
    PensionModule,
    SocialSecurityModule,
    SpendingModule,
    WorkModule,
    health_factor,
)
from nestegg.engine import build_state
from nestegg.healthcare import HealthcareModule
from nestegg.portfolio_modules import (
    CashBufferModule,
    ConversionModule,
    FundingModule,
    RebalancingModule,
    RmdModule,
    interpolate_targets,
)
from nestegg.schema import GlidepathTarget, HealthPoint
from nestegg.state import CashflowItem, TaxLedger, YearPlan
from nestegg.tax_module import TaxModule, compute_year_tax
from tests.helpers import load_sample_snapshot, make_context, sample_snapshot_data


def _snapshot(**changes):
    data = sample_snapshot_data()
    for key, value in changes.items():
        if key == "strategies":
            data["scenario"]["strategies"].update(value)
        else:
            data[key] = value
    return load_sample_snapshot(data)


# ---------------------------------------------------------------------------
# Spending


def test_spending_emits_need_and_want_items():
    snapshot = load_sample_snapshot()
    flows = SpendingModule(snapshot).get_cashflows(build_state(snapshot), make_context(snapshot))

    assert [(flow.id, flow.category, flow.cash) for flow in flows] == [
        ("living-0-need", "spending_need", -3500.0),
        ("living-0-want", "spending_want", -1500.0),
    ]


def test_spending_inflates_from_run_start():
    snapshot = load_sample_snapshot()
    context = make_context(snapshot, on=date(2026, 1, 1), start=date(2025, 1, 1), month_index=12)
    flows = SpendingModule(snapshot).get_cashflows(build_state(snapshot), context)

    assert flows[0].cash == pytest.approx(-3500.0 * 1.025)


def test_spending_respects_item_window():
    snapshot = _snapshot(spending_items=[{"id": "trip", "want_amount": 800, "start_date": "2026-01-01"}])
    flows = SpendingModule(snapshot).get_cashflows(build_state(snapshot), make_context(snapshot))
    assert flows == []


def test_cap_wants_guardrail_limits_discretionary_spending():
    snapshot = _snapshot(
        work_periods=[],
        holdings=[],
        cash_accounts=[{"id": "cash", "balance": 100000}],
        spending_items=[{"id": "living", "need_amount": 200, "want_amount": 1000}],
        strategies={"withdrawal": {"guardrail_strategy": "cap_wants", "guardrail_withdrawal_rate_limit": 0.04}},
    )
    state = build_state(snapshot)
    flows = SpendingModule(snapshot).get_cashflows(state, make_context(snapshot))

    want = next(flow for flow in flows if flow.category == "spending_want")
    assert want.cash == pytest.approx(-(100000 * 0.04 / 12 - 200))
    assert state.guardrails.months_below == 1


def test_legacy_guardrail_cuts_wants_after_a_drawdown():
    snapshot = _snapshot(
        work_periods=[],
        holdings=[],
        cash_accounts=[{"id": "cash", "balance": 100000}],
        strategies={"inflation": {"cpi": 0.0}, "withdrawal": {"guardrail_strategy": "legacy", "guardrail_pct": 0.2}},
    )
    state = build_state(snapshot)
    module = SpendingModule(snapshot)
    module.get_cashflows(state, make_context(snapshot))
    assert state.guardrails.target_balance == 100000

    state.cash_accounts[0].balance = 50000
    flows = module.get_cashflows(state, make_context(snapshot, on=date(2025, 2, 1), start=date(2025, 1, 1), month_index=1))

    want = next(flow for flow in flows if flow.category == "spending_want")
    assert want.cash == pytest.approx(-1500.0 * 0.8)


def test_guardrails_wait_for_retirement():
    snapshot = _snapshot(strategies={"withdrawal": {"guardrail_strategy": "cap_wants", "guardrail_withdrawal_rate_limit": 0.0001}})
    flows = SpendingModule(snapshot).get_cashflows(build_state(snapshot), make_context(snapshot))

    want = next(flow for flow in flows if flow.category == "spending_want")
    assert want.cash == -1500.0


def test_health_factor_interpolates():
    points = [HealthPoint(health=0.5, factor=0.0), HealthPoint(health=1.0, factor=1.0)]
    assert health_factor(0.75, points) == pytest.approx(0.5)
    assert health_factor(0.4, points) == 0.0
    assert health_factor(1.2, points) == 1.0
    assert health_factor(0.3, []) == 1.0


# ---------------------------------------------------------------------------
# Events, pensions, charitable


def test_event_income_is_attributed_only_for_inflows():
    snapshot = _snapshot(
        events=[
            {"id": "bonus", "date": "2025-01-15", "amount": 5000, "tax_treatment": "ordinary"},
            {"id": "roof", "date": "2025-01-20", "amount": -8000, "tax_treatment": "ordinary"},
            {"id": "later", "date": "2025-06-01", "amount": 100},
        ]
    )
    flows = EventModule(snapshot).get_cashflows(build_state(snapshot), make_context(snapshot))

    assert [(flow.id, flow.cash, flow.ordinary_income) for flow in flows] == [
        ("bonus-0", 5000.0, 5000.0),
        ("roof-0", -8000.0, 0.0),
    ]


def test_pension_pays_ordinary_income_within_window():
    snapshot = _snapshot(
        pensions=[{"id": "db", "monthly_amount": 1000, "start_date": "2024-01-01", "tax_treatment": "ordinary"}]
    )
    module = PensionModule(snapshot)
    flows = module.get_cashflows(build_state(snapshot), make_context(snapshot))

    assert [(flow.category, flow.cash, flow.ordinary_income) for flow in flows] == [("pension", 1000.0, 1000.0)]


def test_charitable_qcd_after_qcd_age():
    snapshot = _snapshot(strategies={"charitable": {"annual_giving": 12000, "use_qcd": True, "qcd_annual_amount": 6000}})
    module = CharitableModule(snapshot)
    state = build_state(snapshot)
    context = make_context(snapshot, age=72.0)

    (flow,) = module.get_cashflows(state, context)
    (intent,) = module.get_action_intents(state, context)

    assert flow.cash == -1000.0
    assert flow.deductions == pytest.approx(500.0)
    assert intent.source_holding_id == "ira"
    assert intent.amount == pytest.approx(500.0)
    assert intent.tax_treatment == "tax_exempt"


def test_charitable_before_qcd_age_is_fully_deductible():
    snapshot = _snapshot(strategies={"charitable": {"annual_giving": 12000, "use_qcd": True}})
    module = CharitableModule(snapshot)
    state = build_state(snapshot)
    context = make_context(snapshot, age=60.0)

    (flow,) = module.get_cashflows(state, context)
    assert flow.deductions == 1000.0
    assert module.get_action_intents(state, context) == []


# ---------------------------------------------------------------------------
# Work and Social Security


def test_work_income_deferral_and_contribution():
    snapshot = load_sample_snapshot()
    module = WorkModule(snapshot)
    state = build_state(snapshot)
    context = make_context(snapshot)

    income, deferral = module.get_cashflows(state, context)
    (intent,) = module.get_action_intents(state, context)

    assert (income.cash, income.ordinary_income, income.earned_income) == (10000.0, 10000.0, 10000.0)
    assert (deferral.cash, deferral.deductions) == (-1000.0, 1000.0)
    assert intent.kind == "deposit"
    assert intent.target_holding_id == "ira"
    assert intent.amount == pytest.approx(1250.0)
    assert not intent.from_cash


def test_work_deferral_capped_by_remaining_limit():
    snapshot = load_sample_snapshot()
    state = build_state(snapshot)
    state.contributions_ytd["traditional"] = 23000
    _, deferral = WorkModule(snapshot).get_cashflows(state, make_context(snapshot))

    assert deferral.cash == pytest.approx(-500.0)


def test_work_stops_at_end_date():
    snapshot = load_sample_snapshot()
    context = make_context(snapshot, on=date(2025, 7, 1), start=date(2025, 1, 1), month_index=6)
    assert WorkModule(snapshot).get_cashflows(build_state(snapshot), context) == []


def test_social_security_starts_at_claim_and_grows_with_cpi():
    snapshot = _snapshot(
        social_security={
            "claim_date": "2025-03-01",
            "earnings": [{"year": year, "amount": 60000} for year in range(1985, 2025)],
        }
    )
    module = SocialSecurityModule(snapshot)
    state = build_state(snapshot)
    start = date(2025, 1, 1)

    assert module.get_cashflows(state, make_context(snapshot, on=date(2025, 2, 1), start=start, month_index=1)) == []
    (first,) = module.get_cashflows(state, make_context(snapshot, on=date(2025, 3, 1), start=start, month_index=2))
    (later,) = module.get_cashflows(state, make_context(snapshot, on=date(2026, 3, 1), start=start, month_index=14))

    assert first.category == "social_security"
    assert first.social_security == first.cash
    assert first.cash == pytest.approx(module.estimate.monthly_benefit)
    assert later.cash == pytest.approx(first.cash * 1.025)


# ---------------------------------------------------------------------------
# Healthcare


def test_healthcare_suppressed_while_covered_by_work():
    snapshot = load_sample_snapshot()
    assert HealthcareModule(snapshot).get_cashflows(build_state(snapshot), make_context(snapshot)) == []


def test_pre_medicare_premium():
    snapshot = _snapshot(work_periods=[], strategies={"healthcare": {"pre_medicare_monthly_premium": 600, "inflation_type": "none"}})
    (flow,) = HealthcareModule(snapshot).get_cashflows(build_state(snapshot), make_context(snapshot, age=60.0))
    assert flow.cash == -600.0


def test_medicare_premium_with_irmaa_lookback():
    snapshot = _snapshot(
        work_periods=[],
        strategies={"healthcare": {"medicare_monthly_premium": 250, "inflation_type": "none"}},
    )
    state = build_state(snapshot)
    state.magi_history[0] = 120000
    context = make_context(snapshot, on=date(2027, 1, 1), start=date(2025, 1, 1), month_index=24, age=66.0)

    (flow,) = HealthcareModule(snapshot).get_cashflows(state, context)

    # 2026 tiers carried to 2027: 120k sits in the second tier.
    assert flow.cash == pytest.approx(-(250 + 74 + 13))


# ---------------------------------------------------------------------------
# Cash buffer


def test_cash_buffer_inside_band_does_nothing():
    snapshot = load_sample_snapshot()
    state = build_state(snapshot)
    assert CashBufferModule(snapshot).get_action_intents(state, make_context(snapshot)) == []


def test_cash_buffer_refills_to_target_in_withdrawal_order():
    snapshot = load_sample_snapshot()
    state = build_state(snapshot)
    state.cash_accounts[0].balance = 10000

    (intent,) = CashBufferModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.id == "cash-buffer-brokerage"
    assert intent.kind == "withdraw"
    assert intent.amount == pytest.approx(60000 - 10000)
    assert intent.priority == 60


def test_cash_buffer_pro_rata_refill_has_no_source():
    snapshot = _snapshot(strategies={"cash_buffer": {"refill_priority": "pro_rata"}})
    state = build_state(snapshot)
    state.cash_accounts[0].balance = 10000

    (intent,) = CashBufferModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.source_holding_id is None
    assert intent.id == "cash-buffer-0"


def test_cash_buffer_tax_deferred_first():
    snapshot = _snapshot(strategies={"cash_buffer": {"refill_priority": "tax_deferred_first"}})
    state = build_state(snapshot)
    state.cash_accounts[0].balance = 10000

    (intent,) = CashBufferModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.source_holding_id == "ira"


def test_cash_buffer_invests_excess_into_taxable():
    snapshot = load_sample_snapshot()
    state = build_state(snapshot)
    state.cash_accounts[0].balance = 200000

    (intent,) = CashBufferModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.kind == "deposit"
    assert intent.from_cash
    assert intent.target_holding_id == "brokerage"
    assert intent.amount == pytest.approx(200000 - 60000)


def test_bridge_years_raise_target():
    snapshot = _snapshot(strategies={"early_retirement": {"bridge_cash_years": 2}})
    state = build_state(snapshot)
    state.cash_accounts[0].balance = 10000

    (intent,) = CashBufferModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.amount == pytest.approx(5000 * 24 - 10000)


# ---------------------------------------------------------------------------
# Rebalancing


def _rebalancing_snapshot(**rebalancing):
    settings = {"enabled": True, "frequency": "monthly", "drift_threshold": 0.05}
    settings.update(rebalancing)
    return _snapshot(
        strategies={
            "rebalancing": settings,
            "glidepath": {"mode": "age", "targets": [{"key": 60, "equity": 50, "bonds": 50}]},
        }
    )


def test_interpolate_targets_between_keys():
    targets = [GlidepathTarget(key=50, equity=0.8, bonds=0.2), GlidepathTarget(key=70, equity=0.4, bonds=0.6)]
    weights = interpolate_targets(targets, 60)
    assert weights["equity"] == pytest.approx(0.6)
    assert weights["bonds"] == pytest.approx(0.4)
    assert interpolate_targets(targets, 40)["equity"] == 0.8
    assert interpolate_targets([], 40) is None


def test_rebalancing_sells_traditional_equity_into_new_bond_holding():
    snapshot = _rebalancing_snapshot()
    state = build_state(snapshot)

    (intent,) = RebalancingModule(snapshot).get_action_intents(state, make_context(snapshot, age=60.0))

    # 750k equity and 120k bonds against a 50/50 target.
    assert intent.kind == "rebalance"
    assert intent.source_holding_id == "ira"
    assert intent.target_holding_id == "ira-acct-bonds-traditional"
    assert intent.amount == pytest.approx(315000.0)
    created = state.holding("ira-acct-bonds-traditional")
    assert created.tax_type == "traditional"
    assert created.holding_type == "bonds"


def test_rebalancing_skips_below_drift_threshold():
    snapshot = _rebalancing_snapshot(drift_threshold=0.5)
    state = build_state(snapshot)
    assert RebalancingModule(snapshot).get_action_intents(state, make_context(snapshot, age=60.0)) == []


def test_quarterly_rebalancing_waits_for_quarter_end():
    snapshot = _rebalancing_snapshot(frequency="quarterly")
    module = RebalancingModule(snapshot)
    state = build_state(snapshot)
    start = date(2025, 1, 1)

    assert module.get_action_intents(state, make_context(snapshot, age=60.0)) == []
    due = make_context(snapshot, on=date(2025, 3, 1), start=start, month_index=2, age=60.0)
    assert module.get_action_intents(state, due)


def test_rebalancing_disabled():
    snapshot = load_sample_snapshot()
    assert RebalancingModule(snapshot).get_action_intents(build_state(snapshot), make_context(snapshot)) == []


# ---------------------------------------------------------------------------
# Conversions


def test_conversion_plan_is_capped_by_max_conversion():
    snapshot = load_sample_snapshot()
    plan = ConversionModule(snapshot).plan_year(build_state(snapshot), make_context(snapshot), YearPlan())

    assert plan.conversion_amount == pytest.approx(40000.0)
    assert plan.conversion_iterations >= 1


def test_conversion_plan_fills_bracket_including_standard_deduction():
    snapshot = _snapshot(strategies={"roth_conversion": {"enabled": True, "target_bracket_rate": 0.12, "respect_irmaa": False}})
    state = build_state(snapshot)
    state.ledger.ordinary_income = 10000

    plan = ConversionModule(snapshot).plan_year(state, make_context(snapshot), YearPlan())

    expected = (47150 + 14600) * 1.025 - 10000
    assert plan.conversion_amount == pytest.approx(expected)


def test_conversion_outside_age_window_plans_nothing():
    snapshot = _snapshot(strategies={"roth_conversion": {"enabled": True, "target_bracket_rate": 0.12, "start_age": 65}})
    plan = ConversionModule(snapshot).plan_year(build_state(snapshot), make_context(snapshot, age=60.0), YearPlan())
    assert plan.conversion_amount == 0.0


def test_conversion_intents_at_year_start_only():
    snapshot = load_sample_snapshot()
    module = ConversionModule(snapshot)
    state = build_state(snapshot)
    plan = YearPlan(conversion_amount=40000.0, conversion_iterations=1)

    (intent,) = module.get_action_intents(state, make_context(snapshot, year_plan=plan))
    later = make_context(snapshot, on=date(2025, 2, 1), start=date(2025, 1, 1), month_index=1, year_plan=plan)

    assert (intent.kind, intent.source_holding_id, intent.target_holding_id) == ("convert", "ira", "roth")
    assert intent.amount == 40000.0
    assert intent.id == "conversion-0-ira"
    assert module.get_action_intents(state, later) == []


def test_preview_mode_plans_but_does_not_convert():
    snapshot = load_sample_snapshot()
    plan = YearPlan(conversion_amount=40000.0)
    context = make_context(snapshot, plan_mode="preview", year_plan=plan)
    assert ConversionModule(snapshot).get_action_intents(build_state(snapshot), context) == []


def test_ladder_amount_used_when_larger():
    snapshot = _snapshot(
        strategies={"roth_conversion": {"enabled": False}, "roth_ladder": {"enabled": True, "annual_amount": 10000}}
    )
    (intent,) = ConversionModule(snapshot).get_action_intents(build_state(snapshot), make_context(snapshot))
    assert intent.amount == 10000.0


def test_ladder_runs_ahead_of_its_spending_ages_by_the_lead_time():
    ladder = {"enabled": True, "annual_amount": 12000, "start_age": 60, "end_age": 65, "lead_time_years": 5}
    snapshot = _snapshot(strategies={"roth_conversion": {"enabled": False}, "roth_ladder": ladder})
    module = ConversionModule(snapshot)

    assert module.ladder_amount(make_context(snapshot, age=54.5)) == 0.0
    assert module.ladder_amount(make_context(snapshot, age=55.0)) == 12000.0
    assert module.ladder_amount(make_context(snapshot, age=60.0)) == 12000.0
    assert module.ladder_amount(make_context(snapshot, age=60.5)) == 0.0


def test_ladder_falls_back_to_spending_target():
    ladder = {"enabled": True, "target_after_tax_spending": 30000}
    snapshot = _snapshot(strategies={"roth_conversion": {"enabled": False}, "roth_ladder": ladder})
    module = ConversionModule(snapshot)
    next_year = make_context(snapshot, on=date(2026, 1, 1), start=date(2025, 1, 1), month_index=12)

    (intent,) = module.get_action_intents(build_state(snapshot), make_context(snapshot))
    assert intent.amount == 30000.0
    assert module.ladder_amount(next_year) == pytest.approx(30750.0)


# ---------------------------------------------------------------------------
# RMD


def test_rmd_intents_withholding_and_reinvestment():
    snapshot = _snapshot(strategies={"rmd": {"excess_handling": "taxable", "withholding_rate": 0.1}})
    module = RmdModule(snapshot)
    state = build_state(snapshot)
    context = make_context(snapshot, age=75.0)

    (withholding,) = module.get_cashflows(state, context)
    rmd, reinvest = module.get_action_intents(state, context)

    required = 500000 / 24.6
    assert rmd.kind == "rmd"
    assert rmd.source_holding_id == "ira"
    assert rmd.amount == pytest.approx(required)
    assert (reinvest.kind, reinvest.target_holding_id, reinvest.from_cash) == ("deposit", "brokerage", True)
    assert reinvest.priority > rmd.priority
    assert withholding.category == "tax"
    assert withholding.tax_paid == pytest.approx(required * 0.1)


def test_no_rmd_before_start_age_or_mid_year():
    snapshot = load_sample_snapshot()
    module = RmdModule(snapshot)
    state = build_state(snapshot)
    mid_year = make_context(snapshot, on=date(2025, 5, 1), start=date(2025, 1, 1), month_index=4, age=75.0)

    assert module.get_action_intents(state, make_context(snapshot, age=70.0)) == []
    assert module.get_action_intents(state, mid_year) == []


# ---------------------------------------------------------------------------
# Taxes


def test_year_end_settlement_and_april_payment():
    snapshot = load_sample_snapshot()
    module = TaxModule(snapshot)
    state = build_state(snapshot)
    state.ledger.ordinary_income = 80000
    state.ledger.tax_paid = 1000
    year_end = make_context(snapshot, on=date(2025, 12, 1), start=date(2025, 1, 1), month_index=11)

    module.on_end_of_year(state, year_end)

    liability = compute_year_tax(state.ledger, year_end).total
    assert state.tax_history[0] == pytest.approx(liability)
    assert state.pending_tax_due[0] == pytest.approx(liability - 1000)
    assert state.magi_history[0] == pytest.approx(80000)

    march = make_context(snapshot, on=date(2026, 3, 1), start=date(2025, 1, 1), month_index=14)
    april = make_context(snapshot, on=date(2026, 4, 1), start=date(2025, 1, 1), month_index=15)
    assert module.get_cashflows(state, march) == []
    (payment,) = module.get_cashflows(state, april)
    assert payment.id == "tax-settlement-0"
    assert payment.cash == pytest.approx(-(liability - 1000))
    assert state.pending_tax_due == {}


def test_overpayment_is_refunded():
    snapshot = load_sample_snapshot()
    module = TaxModule(snapshot)
    state = build_state(snapshot)
    state.pending_tax_due[0] = -750.0
    april = make_context(snapshot, on=date(2026, 4, 1), start=date(2025, 1, 1), month_index=15)

    (refund,) = module.get_cashflows(state, april)

    assert refund.label == "Tax refund"
    assert refund.cash == 750.0


def test_withholding_only_with_earned_income():
    snapshot = load_sample_snapshot()
    module = TaxModule(snapshot)
    state = build_state(snapshot)
    context = make_context(snapshot)
    salary = CashflowItem(
        id="job", label="Job", category="work", cash=10000, ordinary_income=10000, earned_income=10000
    )
    pension = CashflowItem(id="db", label="DB", category="pension", cash=2000, ordinary_income=2000)

    (withholding,) = module.on_after_cashflows([salary], state, context)
    assert withholding.cash < 0
    assert withholding.tax_paid == pytest.approx(-withholding.cash)
    assert module.on_after_cashflows([pension], build_state(snapshot), context) == []


def test_december_withholding_catches_up_to_year_tax_after_mid_year_start():
    snapshot = load_sample_snapshot()
    module = TaxModule(snapshot)
    state = build_state(snapshot)
    state.ledger.ordinary_income = 50000
    state.ledger.earned_income = 50000
    state.ledger.tax_paid = 2000
    december = make_context(snapshot, on=date(2025, 12, 1), start=date(2025, 7, 1), month_index=5)
    salary = CashflowItem(
        id="job", label="Job", category="work", cash=10000, ordinary_income=10000, earned_income=10000
    )

    (withholding,) = module.on_after_cashflows([salary], state, december)

    year_tax = compute_year_tax(TaxLedger(ordinary_income=60000, earned_income=60000), december).total
    assert withholding.tax_paid == pytest.approx(year_tax - 2000)


# ---------------------------------------------------------------------------
# Funding


def test_funding_covers_negative_cash_in_withdrawal_order():
    snapshot = load_sample_snapshot()
    state = build_state(snapshot)
    state.cash_accounts[0].balance = -1000

    (intent,) = FundingModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.id == "funding-brokerage"
    assert intent.amount == pytest.approx(1000.0)
    assert intent.priority == 100


def test_funding_falls_back_to_sourceless_draw():
    snapshot = _snapshot(holdings=[])
    state = build_state(snapshot)
    state.cash_accounts[0].balance = -1000

    (intent,) = FundingModule(snapshot).get_action_intents(state, make_context(snapshot))

    assert intent.id == "funding-cash-deficit"
    assert intent.source_holding_id is None


def _early_funding_snapshot(allow_penalty):
    ira = {"id": "ira", "account_id": "ira-acct", "tax_type": "traditional", "balance": 5000}
    return _snapshot(
        holdings=[ira],
        strategies={
            "withdrawal": {"order": ["taxable", "traditional"], "avoid_early_penalty": False},
            "early_retirement": {"allow_penalty": allow_penalty},
        },
    )


def test_funding_leaves_deficit_rather_than_draw_penalized_holdings():
    snapshot = _early_funding_snapshot(allow_penalty=False)
    module = FundingModule(snapshot)
    state = build_state(snapshot)
    state.cash_accounts[0].balance = -1000
    context = make_context(snapshot, age=50.0)

    assert module.get_action_intents(state, context) == []
    module.on_actions_resolved([], state, context)
    assert state.holding("ira").balance == 5000
    assert state.deficit_months == [0]


def test_funding_draws_penalized_holdings_when_allowed():
    snapshot = _early_funding_snapshot(allow_penalty=True)
    state = build_state(snapshot)
    state.cash_accounts[0].balance = -1000

    (intent,) = FundingModule(snapshot).get_action_intents(state, make_context(snapshot, age=50.0))

    assert (intent.id, intent.source_holding_id, intent.amount) == ("funding-ira", "ira", 1000.0)


def test_funding_records_unfunded_months():
    snapshot = load_sample_snapshot()
    module = FundingModule(snapshot)
    state = build_state(snapshot)
    state.cash_accounts[0].balance = -5
    module.on_actions_resolved([], state, make_context(snapshot, month_index=3))
    state.cash_accounts[0].balance = 0
    module.on_actions_resolved([], state, make_context(snapshot, month_index=4))

    assert state.deficit_months == [3]
