"""Payroll (FICA) tax on earned income."""

from __future__ import annotations

from dataclasses import dataclass

from .schema import PayrollPolicy


@dataclass(slots=True)
class PayrollTax:
    social_security_tax: float
    medicare_tax: float

    @property
    def total(self) -> float:
        return self.social_security_tax + self.medicare_tax


def compute_payroll_tax(earned_income: float, policy: PayrollPolicy | None) -> PayrollTax:
    if policy is None or earned_income <= 0:
        return PayrollTax(social_security_tax=0.0, medicare_tax=0.0)

    social_security_taxable = min(earned_income, policy.social_security_wage_base)
    social_security_tax = social_security_taxable * policy.social_security_rate
    medicare_tax = earned_income * policy.medicare_rate
    if earned_income > policy.additional_medicare_threshold:
        medicare_tax += (earned_income - policy.additional_medicare_threshold) * policy.additional_medicare_rate
    return PayrollTax(social_security_tax=social_security_tax, medicare_tax=medicare_tax)
