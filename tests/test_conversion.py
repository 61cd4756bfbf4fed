import pytest

from nestegg.conversion import aitken_extrapolate, solve_conversion


def _flat_tax(rate):
    return lambda extra: rate * extra


def test_aitken_accelerates_geometric_sequence():
    assert aitken_extrapolate(1.0, 0.5, 0.25) == pytest.approx(0.0)


def test_aitken_degenerate_returns_none():
    assert aitken_extrapolate(1.0, 2.0, 3.0) is None


def test_cash_covers_tax_so_target_is_converted():
    solution = solve_conversion(
        target=10000,
        tax_fn=_flat_tax(0.2),
        cash_available=1_000_000,
        estimate_taxable_funding=lambda amount: amount,
    )
    assert solution.converged
    assert solution.amount == pytest.approx(10000.0)
    assert solution.funding == 0.0
    assert solution.iterations == 1


def test_tax_funded_from_traditional_shrinks_conversion():
    solution = solve_conversion(
        target=100000,
        tax_fn=_flat_tax(0.22),
        cash_available=0,
        estimate_taxable_funding=lambda amount: amount,
    )
    # Conversion plus the withdrawal that pays its tax fill the same bracket room.
    assert solution.converged
    assert solution.amount == pytest.approx(78000.0)
    assert solution.funding == pytest.approx(22000.0)
    assert solution.amount + solution.funding == pytest.approx(100000.0)


def test_tax_funded_from_non_taxable_sources_keeps_target():
    solution = solve_conversion(
        target=50000,
        tax_fn=_flat_tax(0.22),
        cash_available=0,
        estimate_taxable_funding=lambda amount: 0.0,
    )
    assert solution.amount == pytest.approx(50000.0)


def test_irmaa_headroom_caps_conversion():
    solution = solve_conversion(
        target=50000,
        tax_fn=_flat_tax(0.2),
        cash_available=1_000_000,
        estimate_taxable_funding=lambda amount: amount,
        irmaa_headroom=30000,
    )
    assert solution.amount == pytest.approx(30000.0)


def test_max_amount_caps_conversion():
    solution = solve_conversion(
        target=50000,
        tax_fn=_flat_tax(0.2),
        cash_available=1_000_000,
        estimate_taxable_funding=lambda amount: amount,
        max_amount=20000,
    )
    assert solution.amount == pytest.approx(20000.0)


def test_min_amount_raises_conversion_but_max_wins():
    raised = solve_conversion(
        target=1000,
        tax_fn=_flat_tax(0.1),
        cash_available=1_000_000,
        estimate_taxable_funding=lambda amount: amount,
        min_amount=5000,
    )
    capped = solve_conversion(
        target=1000,
        tax_fn=_flat_tax(0.1),
        cash_available=1_000_000,
        estimate_taxable_funding=lambda amount: amount,
        min_amount=60000,
        max_amount=40000,
    )
    assert raised.amount == pytest.approx(5000.0)
    assert capped.amount == pytest.approx(40000.0)


def test_non_positive_target_skips_iteration():
    solution = solve_conversion(
        target=-500,
        tax_fn=_flat_tax(0.2),
        cash_available=0,
        estimate_taxable_funding=lambda amount: amount,
    )
    assert solution.amount == 0.0
    assert solution.iterations == 0
    assert solution.converged


def test_iteration_budget_returns_last_candidate():
    solution = solve_conversion(
        target=100000,
        tax_fn=_flat_tax(0.22),
        cash_available=0,
        estimate_taxable_funding=lambda amount: amount,
        max_iterations=1,
    )
    assert not solution.converged
    assert solution.iterations == 1
    assert solution.amount == pytest.approx(78000.0)
    assert solution.history == [100000.0, 78000.0]
