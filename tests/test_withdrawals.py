from datetime import date

import pytest

from nestegg.schema import EarlyRetirementStrategy, TaxableLotStrategy, WithdrawalStrategy
from nestegg.state import BasisLot, CashAccountState, HoldingState, SimulationState
from nestegg.withdrawals import (
    estimate_ordinary_funding,
    penalized_types,
    plan_withdrawals,
    sort_taxable,
    withdrawal_order,
)

ON = date(2025, 1, 1)
EXAMPLE_ORDER = ["taxable", "traditional", "roth", "hsa", "roth_basis"]


def _make_holding(holding_id, tax_type, balance, lots=()):
    return HoldingState(
        id=holding_id,
        name=holding_id,
        account_id=f"{holding_id}-acct",
        tax_type=tax_type,
        holding_type="equity",
        balance=float(balance),
        lots=[BasisLot(date=lot_date, amount=float(amount)) for lot_date, amount in lots],
    )


def _make_state(*holdings, cash=0.0):
    return SimulationState(
        cash_accounts=[CashAccountState(id="cash", name="Cash", balance=cash)],
        holdings=list(holdings),
    )


def _example_state():
    return _make_state(
        _make_holding("taxable", "taxable", 100, [("2020-01-01", 100)]),
        _make_holding("roth", "roth", 200, [("2015-01-01", 120)]),
        _make_holding("hsa", "hsa", 100),
        _make_holding("traditional", "traditional", 100),
    )


def _plan(state, amount, *, age=50.0, order=None, **withdrawal_kwargs):
    withdrawal = WithdrawalStrategy(order=order or list(EXAMPLE_ORDER), **withdrawal_kwargs)
    return plan_withdrawals(
        state=state,
        amount=amount,
        on=ON,
        age=age,
        withdrawal=withdrawal,
        early=EarlyRetirementStrategy(),
        lots=TaxableLotStrategy(),
    )


def test_example_need_covered_by_taxable_then_seasoned_roth_basis():
    draws = _plan(_example_state(), 220)

    assert [(d.holding_id, d.amount, d.basis_only) for d in draws] == [
        ("taxable", 100.0, False),
        ("roth", 120.0, True),
    ]
    assert sum(d.amount for d in draws) == pytest.approx(220.0)


def test_example_remainder_comes_from_traditional():
    draws = _plan(_example_state(), 250)

    assert [(d.holding_id, d.amount) for d in draws] == [
        ("taxable", 100.0),
        ("roth", 120.0),
        ("traditional", 30.0),
    ]


def test_roth_basis_draw_is_capped_by_seasoned_basis():
    state = _make_state(_make_holding("roth", "roth", 500, [("2015-01-01", 50), ("2023-06-01", 200)]))
    draws = _plan(state, 100, age=62.0, order=["roth_basis"])

    assert [(d.holding_id, d.amount, d.basis_only) for d in draws] == [("roth", 50.0, True)]


def test_no_draws_for_non_positive_amount():
    assert _plan(_example_state(), 0) == []


def test_penalized_types():
    assert penalized_types(50.0, use_72t=False) == {"traditional", "roth", "hsa"}
    assert penalized_types(50.0, use_72t=True) == {"roth", "hsa"}
    assert penalized_types(59.5, use_72t=False) == set()


def test_order_moves_penalized_types_last():
    order = withdrawal_order(
        order=EXAMPLE_ORDER,
        age=50.0,
        avoid_early_penalty=True,
        allow_penalty=False,
        use_72t=False,
        harvest_gains=False,
    )
    assert order == ["taxable", "roth_basis", "traditional", "roth", "hsa"]


def test_order_excludes_penalized_types_when_penalties_disallowed():
    order = withdrawal_order(
        order=["taxable", "traditional", "roth", "hsa"],
        age=50.0,
        avoid_early_penalty=False,
        allow_penalty=False,
        use_72t=False,
        harvest_gains=False,
    )
    assert order == ["taxable"]


def test_order_unchanged_when_penalties_allowed_or_after_penalty_age():
    base = ["traditional", "taxable", "roth", "hsa"]
    allowed = withdrawal_order(
        order=base, age=50.0, avoid_early_penalty=False, allow_penalty=True, use_72t=False, harvest_gains=False
    )
    older = withdrawal_order(
        order=base, age=65.0, avoid_early_penalty=True, allow_penalty=False, use_72t=False, harvest_gains=False
    )
    assert allowed == base
    assert older == base


def test_72t_keeps_traditional_in_place():
    order = withdrawal_order(
        order=["traditional", "roth", "taxable"],
        age=50.0,
        avoid_early_penalty=True,
        allow_penalty=False,
        use_72t=True,
        harvest_gains=False,
    )
    assert order == ["traditional", "taxable", "roth"]


def test_gain_harvest_promotes_taxable_and_highest_gain_first():
    low_gain = _make_holding("low", "taxable", 1000, [("2020-01-01", 900)])
    high_gain = _make_holding("high", "taxable", 800, [("2020-01-01", 100)])
    trad = _make_holding("ira", "traditional", 5000)
    state = _make_state(low_gain, high_gain, trad)

    draws = _plan(state, 900, age=65.0, order=["traditional", "taxable"], taxable_gain_harvest_target=5000)

    assert [(d.holding_id, d.amount) for d in draws] == [("high", 800.0), ("low", 100.0)]


def test_harvest_stops_once_target_reached():
    state = _make_state(
        _make_holding("brokerage", "taxable", 1000, [("2020-01-01", 100)]),
        _make_holding("ira", "traditional", 5000),
    )
    state.ledger.capital_gains = 6000

    draws = _plan(state, 500, age=65.0, order=["traditional", "taxable"], taxable_gain_harvest_target=5000)

    assert [d.holding_id for d in draws] == ["ira"]


def test_sort_taxable_modes():
    a = _make_holding("a", "taxable", 1000, [("2020-01-01", 900)])
    b = _make_holding("b", "taxable", 500, [("2020-01-01", 800)])
    c = _make_holding("c", "taxable", 2000, [("2020-01-01", 1500)])

    assert [h.id for h in sort_taxable([a, b, c], harvest_gains=False, harvest_losses=False)] == ["c", "a", "b"]
    assert [h.id for h in sort_taxable([a, b, c], harvest_gains=True, harvest_losses=False)] == ["c", "a", "b"]
    assert [h.id for h in sort_taxable([a, b, c], harvest_gains=False, harvest_losses=True)] == ["b", "a", "c"]


def test_estimate_ordinary_funding_counts_only_taxed_draws():
    state = _make_state(
        _make_holding("brokerage", "taxable", 100, [("2020-01-01", 100)]),
        _make_holding("ira", "traditional", 1000),
    )
    estimate = estimate_ordinary_funding(
        state=state,
        amount=150,
        on=ON,
        age=65.0,
        withdrawal=WithdrawalStrategy(),
        early=EarlyRetirementStrategy(),
        lots=TaxableLotStrategy(),
    )
    assert estimate == pytest.approx(50.0)


@pytest.mark.parametrize(
    ("order", "amount", "expected"),
    [
        (["roth"], 150, 30.0),
        (["roth"], 100, 0.0),
        (["roth_basis", "roth"], 180, 60.0),
    ],
)
def test_estimate_ordinary_funding_nets_seasoned_roth_basis_before_59(order, amount, expected):
    state = _make_state(_make_holding("roth", "roth", 200, [("2015-01-01", 120), ("2024-06-01", 30)]))
    estimate = estimate_ordinary_funding(
        state=state,
        amount=amount,
        on=ON,
        age=50.0,
        withdrawal=WithdrawalStrategy(order=order, avoid_early_penalty=False),
        early=EarlyRetirementStrategy(allow_penalty=True),
        lots=TaxableLotStrategy(),
    )
    assert estimate == pytest.approx(expected)
