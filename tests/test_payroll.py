import pytest

from nestegg.payroll import compute_payroll_tax
from nestegg.schema import PayrollPolicy
from nestegg.state_taxes import (
    compute_inheritance_tax,
    compute_state_tax,
    select_inheritance_tax_policy,
    select_state_tax_policy,
)


def _payroll_policy():
    return PayrollPolicy(
        year=2024,
        filing_status="single",
        social_security_wage_base=168600.0,
        additional_medicare_threshold=200000.0,
    )


def test_payroll_caps_social_security_and_adds_additional_medicare():
    tax = compute_payroll_tax(250000, _payroll_policy())
    assert tax.social_security_tax == pytest.approx(10453.2)
    assert tax.medicare_tax == pytest.approx(4075.0)
    assert tax.total == pytest.approx(14528.2)


def test_payroll_below_thresholds():
    tax = compute_payroll_tax(50000, _payroll_policy())
    assert tax.social_security_tax == pytest.approx(3100.0)
    assert tax.medicare_tax == pytest.approx(725.0)


def test_payroll_without_policy_or_income_is_zero():
    assert compute_payroll_tax(50000, None).total == 0.0
    assert compute_payroll_tax(0, _payroll_policy()).total == 0.0


def test_oklahoma_brackets():
    policy = select_state_tax_policy("OK", 2025, "single")
    assert policy is not None
    assert compute_state_tax(10000, policy) == pytest.approx(286.5)


def test_no_income_tax_state():
    policy = select_state_tax_policy("tx", 2024, "married_filing_jointly")
    assert compute_state_tax(250000, policy) == 0.0


def test_unknown_state_has_no_policy():
    assert select_state_tax_policy("zz", 2024, "single") is None


def test_new_jersey_brackets():
    policy = select_state_tax_policy("nj", 2025, "single")
    assert compute_state_tax(50000, policy) == pytest.approx(1270.0)


@pytest.mark.parametrize(
    ("relationship", "amount", "expected"),
    [
        ("child", 1_000_000, 0.0),
        ("sibling", 125_000, 11_000.0),
        ("sibling", 20_000, 0.0),
        ("niece_nephew", 2_000_000, 309_250.0),
        ("charity", 500_000, 0.0),
        ("rival", 500_000, 0.0),
    ],
)
def test_new_jersey_inheritance_classes(relationship, amount, expected):
    policy = select_inheritance_tax_policy("NJ", 2030)
    assert compute_inheritance_tax(amount, relationship, policy) == pytest.approx(expected)


def test_inheritance_policy_filters_retirement_accounts():
    policy = select_inheritance_tax_policy("nj", 2024)
    assert policy.taxes_asset({"cash"})
    assert policy.taxes_asset({"taxable", "real_estate"})
    assert not policy.taxes_asset({"traditional"})
    assert not policy.taxes_asset({"roth"})
    assert select_inheritance_tax_policy("tx", 2024) is None
