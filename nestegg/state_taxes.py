"""State income and inheritance tax policies selected by state, year and filing status."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Final

from .policy import select_by_year
from .tax import progressive_tax


@dataclass(slots=True, frozen=True)
class StateTaxPolicy:
    state_code: str
    year: int
    filing_status: str
    standard_deduction: float
    brackets: tuple[tuple[float | None, float], ...]


_OK_SINGLE = (
    (1_000.0, 0.0025),
    (2_500.0, 0.0075),
    (3_750.0, 0.0175),
    (4_900.0, 0.0275),
    (7_200.0, 0.0375),
    (None, 0.0475),
)

_OK_JOINT = (
    (2_000.0, 0.0025),
    (5_000.0, 0.0075),
    (7_500.0, 0.0175),
    (9_800.0, 0.0275),
    (14_400.0, 0.0375),
    (None, 0.0475),
)

_NJ_BRACKETS = (
    (20_000.0, 0.014),
    (35_000.0, 0.0175),
    (40_000.0, 0.035),
    (75_000.0, 0.05525),
    (500_000.0, 0.0637),
    (1_000_000.0, 0.0897),
    (None, 0.1075),
)

STATE_TAX_POLICIES: Final[dict[str, list[StateTaxPolicy]]] = {
    "ok": [
        StateTaxPolicy("ok", 2024, "single", 0.0, _OK_SINGLE),
        StateTaxPolicy("ok", 2024, "married_filing_jointly", 0.0, _OK_JOINT),
        StateTaxPolicy("ok", 2024, "married_filing_separately", 0.0, _OK_SINGLE),
        StateTaxPolicy("ok", 2024, "head_of_household", 0.0, _OK_SINGLE),
    ],
    "tx": [
        StateTaxPolicy("tx", 2024, status, 0.0, ((None, 0.0),))
        for status in ("single", "married_filing_jointly", "married_filing_separately", "head_of_household")
    ],
    "nj": [
        StateTaxPolicy("nj", 2024, status, 0.0, _NJ_BRACKETS)
        for status in ("single", "married_filing_jointly", "married_filing_separately", "head_of_household")
    ],
}


def select_state_tax_policy(state_code: str, year: int, filing_status: str) -> StateTaxPolicy | None:
    policies = STATE_TAX_POLICIES.get(state_code.lower(), [])
    return select_by_year([policy for policy in policies if policy.filing_status == filing_status], year)


def compute_state_tax(taxable_income: float, policy: StateTaxPolicy, *, use_standard_deduction: bool = True) -> float:
    deduction = policy.standard_deduction if use_standard_deduction else 0.0
    return progressive_tax(max(0.0, taxable_income - deduction), list(policy.brackets))


# ---------------------------------------------------------------------------
# Inheritance tax


@dataclass(slots=True, frozen=True)
class InheritanceTaxClass:
    class_id: str
    relationships: frozenset[str]
    exemption: float
    brackets: tuple[tuple[float | None, float], ...]


@dataclass(slots=True, frozen=True)
class InheritanceTaxPolicy:
    """Beneficiary-class rates applied to the estate assets whose tags pass the filters.

    Asset tags are ``cash``, a holding's tax type, and ``real_estate``.
    """

    state_code: str
    year: int
    include_tags: frozenset[str]
    exclude_tags: frozenset[str]
    classes: tuple[InheritanceTaxClass, ...]

    def taxes_asset(self, tags: set[str]) -> bool:
        if self.include_tags and not tags & self.include_tags:
            return False
        return not tags & self.exclude_tags

    def class_for(self, relationship: str) -> InheritanceTaxClass | None:
        for tax_class in self.classes:
            if relationship in tax_class.relationships:
                return tax_class
        return None


INHERITANCE_TAX_POLICIES: Final[dict[str, list[InheritanceTaxPolicy]]] = {
    "nj": [
        InheritanceTaxPolicy(
            "nj",
            2024,
            include_tags=frozenset({"cash", "taxable", "real_estate"}),
            exclude_tags=frozenset({"traditional", "roth", "hsa"}),
            classes=(
                InheritanceTaxClass(
                    "A",
                    frozenset(
                        {
                            "spouse",
                            "civil_union_partner",
                            "domestic_partner",
                            "child",
                            "stepchild",
                            "grandchild",
                            "parent",
                            "grandparent",
                        }
                    ),
                    0.0,
                    ((None, 0.0),),
                ),
                InheritanceTaxClass(
                    "C", frozenset({"sibling", "in_law"}), 25_000.0, ((1_075_000.0, 0.11), (None, 0.16))
                ),
                InheritanceTaxClass(
                    "D",
                    frozenset({"niece_nephew", "cousin", "friend", "unrelated"}),
                    0.0,
                    ((1_075_000.0, 0.15), (None, 0.16)),
                ),
                InheritanceTaxClass(
                    "E",
                    frozenset(
                        {"charity", "religious_institution", "educational_institution", "government_entity"}
                    ),
                    0.0,
                    ((None, 0.0),),
                ),
            ),
        )
    ],
}


def select_inheritance_tax_policy(state_code: str, year: int) -> InheritanceTaxPolicy | None:
    return select_by_year(INHERITANCE_TAX_POLICIES.get(state_code.lower(), []), year)


def compute_inheritance_tax(amount: float, relationship: str, policy: InheritanceTaxPolicy) -> float:
    """Tax on one beneficiary's share; relationships outside every class owe nothing."""
    tax_class = policy.class_for(relationship)
    if tax_class is None:
        return 0.0
    return progressive_tax(max(0.0, amount - tax_class.exemption), list(tax_class.brackets))
