"""Built-in policy tables used when a snapshot does not ship its own."""

from __future__ import annotations

from typing import Final

FILING_STATUSES: Final[set[str]] = {
    "single",
    "married_filing_jointly",
    "married_filing_separately",
    "head_of_household",
}

TAX_TYPES: Final[set[str]] = {"taxable", "traditional", "roth", "hsa"}

# Withdrawal order entries also accept the seasoned Roth contribution bucket.
WITHDRAWAL_ORDER_TYPES: Final[set[str]] = TAX_TYPES | {"roth_basis"}

INFLATION_TYPES: Final[set[str]] = {"none", "cpi", "medical", "housing", "education"}

PENALTY_AGE: Final[float] = 59.5
QCD_AGE: Final[float] = 70.5
MEDICARE_AGE: Final[float] = 65.0
ROTH_SEASONING_MONTHS: Final[int] = 60
MAX_CLAIM_AGE_MONTHS: Final[int] = 70 * 12
DEFAULT_NRA_MONTHS: Final[int] = 67 * 12
TOP_EARNING_YEARS: Final[int] = 35

# Default disposition costs in start-date dollars.
FUNERAL_COSTS: Final[dict[str, float]] = {"funeral": 10_000.0, "burial": 8_000.0, "cremation": 4_000.0}

BENEFICIARY_RELATIONSHIPS: Final[set[str]] = {
    "spouse",
    "civil_union_partner",
    "domestic_partner",
    "child",
    "stepchild",
    "grandchild",
    "parent",
    "grandparent",
    "sibling",
    "in_law",
    "niece_nephew",
    "cousin",
    "friend",
    "unrelated",
    "charity",
    "religious_institution",
    "educational_institution",
    "government_entity",
}

# Brackets are (upper_bound, marginal_rate). Upper bound None means infinity.
FEDERAL_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2024: {
        "single": [
            (11_600.0, 0.10),
            (47_150.0, 0.12),
            (100_525.0, 0.22),
            (191_950.0, 0.24),
            (243_725.0, 0.32),
            (609_350.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_jointly": [
            (23_200.0, 0.10),
            (94_300.0, 0.12),
            (201_050.0, 0.22),
            (383_900.0, 0.24),
            (487_450.0, 0.32),
            (731_200.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_separately": [
            (11_600.0, 0.10),
            (47_150.0, 0.12),
            (100_525.0, 0.22),
            (191_950.0, 0.24),
            (243_725.0, 0.32),
            (365_600.0, 0.35),
            (None, 0.37),
        ],
        "head_of_household": [
            (16_550.0, 0.10),
            (63_100.0, 0.12),
            (100_500.0, 0.22),
            (191_950.0, 0.24),
            (243_700.0, 0.32),
            (609_350.0, 0.35),
            (None, 0.37),
        ],
    },
    2026: {
        "single": [
            (12_400.0, 0.10),
            (50_400.0, 0.12),
            (105_700.0, 0.22),
            (201_775.0, 0.24),
            (256_225.0, 0.32),
            (640_600.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_jointly": [
            (24_800.0, 0.10),
            (100_800.0, 0.12),
            (211_400.0, 0.22),
            (403_550.0, 0.24),
            (512_450.0, 0.32),
            (768_700.0, 0.35),
            (None, 0.37),
        ],
        "married_filing_separately": [
            (12_400.0, 0.10),
            (50_400.0, 0.12),
            (105_700.0, 0.22),
            (201_775.0, 0.24),
            (256_225.0, 0.32),
            (384_350.0, 0.35),
            (None, 0.37),
        ],
        "head_of_household": [
            (17_700.0, 0.10),
            (67_450.0, 0.12),
            (105_700.0, 0.22),
            (201_750.0, 0.24),
            (256_200.0, 0.32),
            (640_600.0, 0.35),
            (None, 0.37),
        ],
    },
}

# Long-term capital gains brackets are (upper_bound, marginal_rate).
CAPITAL_GAINS_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float]]]]] = {
    2024: {
        "single": [(47_025.0, 0.00), (518_900.0, 0.15), (None, 0.20)],
        "married_filing_jointly": [(94_050.0, 0.00), (583_750.0, 0.15), (None, 0.20)],
        "married_filing_separately": [(47_025.0, 0.00), (291_850.0, 0.15), (None, 0.20)],
        "head_of_household": [(63_000.0, 0.00), (551_350.0, 0.15), (None, 0.20)],
    },
    2026: {
        "single": [(50_800.0, 0.00), (557_000.0, 0.15), (None, 0.20)],
        "married_filing_jointly": [(101_600.0, 0.00), (626_350.0, 0.15), (None, 0.20)],
        "married_filing_separately": [(50_800.0, 0.00), (313_175.0, 0.15), (None, 0.20)],
        "head_of_household": [(68_050.0, 0.00), (595_350.0, 0.15), (None, 0.20)],
    },
}

STANDARD_DEDUCTIONS: Final[dict[int, dict[str, float]]] = {
    2024: {
        "single": 14_600.0,
        "married_filing_jointly": 29_200.0,
        "married_filing_separately": 14_600.0,
        "head_of_household": 21_900.0,
    },
    2026: {
        "single": 16_100.0,
        "married_filing_jointly": 32_200.0,
        "married_filing_separately": 16_100.0,
        "head_of_household": 24_150.0,
    },
}

# Provisional income thresholds are (base_amount, adjusted_base_amount).
# Married filing separately is modelled with zero thresholds (85% taxable).
SOCIAL_SECURITY_THRESHOLDS: Final[dict[int, dict[str, tuple[float, float]]]] = {
    2024: {
        "single": (25_000.0, 34_000.0),
        "married_filing_jointly": (32_000.0, 44_000.0),
        "married_filing_separately": (0.0, 0.0),
        "head_of_household": (25_000.0, 34_000.0),
    }
}

IRMAA_LOOKBACK_YEARS: Final[int] = 2

# IRMAA tiers are (max_magi, part_b_surcharge, part_d_surcharge), monthly.
IRMAA_BRACKETS: Final[dict[int, dict[str, list[tuple[float | None, float, float]]]]] = {
    2024: {
        "single": [
            (103_000.0, 0.0, 0.0),
            (129_000.0, 69.90, 12.90),
            (161_000.0, 174.70, 33.30),
            (193_000.0, 279.50, 53.80),
            (500_000.0, 384.30, 74.20),
            (None, 419.30, 81.00),
        ],
        "married_filing_jointly": [
            (206_000.0, 0.0, 0.0),
            (258_000.0, 69.90, 12.90),
            (322_000.0, 174.70, 33.30),
            (386_000.0, 279.50, 53.80),
            (750_000.0, 384.30, 74.20),
            (None, 419.30, 81.00),
        ],
        "married_filing_separately": [
            (103_000.0, 0.0, 0.0),
            (397_000.0, 384.30, 74.20),
            (None, 419.30, 81.00),
        ],
        "head_of_household": [
            (103_000.0, 0.0, 0.0),
            (129_000.0, 69.90, 12.90),
            (161_000.0, 174.70, 33.30),
            (193_000.0, 279.50, 53.80),
            (500_000.0, 384.30, 74.20),
            (None, 419.30, 81.00),
        ],
    },
    2026: {
        "single": [
            (106_000.0, 0.0, 0.0),
            (133_000.0, 74.0, 13.0),
            (167_000.0, 185.0, 33.0),
            (200_000.0, 296.0, 52.0),
            (500_000.0, 407.0, 71.0),
            (None, 444.0, 82.0),
        ],
        "married_filing_jointly": [
            (212_000.0, 0.0, 0.0),
            (266_000.0, 74.0, 13.0),
            (334_000.0, 185.0, 33.0),
            (400_000.0, 296.0, 52.0),
            (750_000.0, 407.0, 71.0),
            (None, 444.0, 82.0),
        ],
        "married_filing_separately": [
            (106_000.0, 0.0, 0.0),
            (394_000.0, 407.0, 71.0),
            (None, 444.0, 82.0),
        ],
        "head_of_household": [
            (106_000.0, 0.0, 0.0),
            (133_000.0, 74.0, 13.0),
            (167_000.0, 185.0, 33.0),
            (200_000.0, 296.0, 52.0),
            (500_000.0, 407.0, 71.0),
            (None, 444.0, 82.0),
        ],
    },
}

PAYROLL_RATES: Final[dict[str, float]] = {
    "social_security_rate": 0.062,
    "medicare_rate": 0.0145,
    "additional_medicare_rate": 0.009,
}

SOCIAL_SECURITY_WAGE_BASES: Final[dict[int, float]] = {
    2024: 168_600.0,
    2025: 176_100.0,
    2026: 184_500.0,
}

ADDITIONAL_MEDICARE_THRESHOLDS: Final[dict[str, float]] = {
    "single": 200_000.0,
    "married_filing_jointly": 250_000.0,
    "married_filing_separately": 125_000.0,
    "head_of_household": 200_000.0,
}

# Annual employee contribution limits by account tax type.
CONTRIBUTION_LIMITS: Final[dict[int, dict[str, float]]] = {
    2024: {"traditional": 23_000.0, "roth": 7_000.0, "hsa": 4_150.0},
    2025: {"traditional": 23_500.0, "roth": 7_000.0, "hsa": 4_300.0},
}

# IRS Uniform Lifetime Table.
UNIFORM_LIFETIME_DIVISORS: Final[dict[int, float]] = {
    73: 26.5,
    74: 25.5,
    75: 24.6,
    76: 23.7,
    77: 22.9,
    78: 22.0,
    79: 21.1,
    80: 20.2,
    81: 19.4,
    82: 18.5,
    83: 17.7,
    84: 16.8,
    85: 16.0,
    86: 15.2,
    87: 14.4,
    88: 13.7,
    89: 12.9,
    90: 12.2,
    91: 11.5,
    92: 10.8,
    93: 10.1,
    94: 9.5,
    95: 8.9,
    96: 8.4,
    97: 7.8,
    98: 7.3,
    99: 6.8,
    100: 6.4,
    101: 6.0,
    102: 5.6,
    103: 5.2,
    104: 4.9,
    105: 4.6,
    106: 4.3,
    107: 4.1,
    108: 3.9,
    109: 3.7,
    110: 3.5,
    111: 3.4,
    112: 3.3,
    113: 3.1,
    114: 3.0,
    115: 2.9,
    116: 2.8,
    117: 2.7,
    118: 2.5,
    119: 2.3,
    120: 2.0,
}

# SSA national average wage index.
SSA_WAGE_INDEX: Final[dict[int, float]] = {
    1980: 12_513.46,
    1981: 13_773.10,
    1982: 14_531.34,
    1983: 15_239.24,
    1984: 16_135.07,
    1985: 16_822.51,
    1986: 17_321.82,
    1987: 18_426.51,
    1988: 19_334.04,
    1989: 20_099.55,
    1990: 21_027.98,
    1991: 21_811.60,
    1992: 22_935.42,
    1993: 23_132.67,
    1994: 23_753.53,
    1995: 24_705.66,
    1996: 25_913.90,
    1997: 27_426.00,
    1998: 28_861.44,
    1999: 30_469.84,
    2000: 32_154.82,
    2001: 32_921.92,
    2002: 33_252.09,
    2003: 34_064.95,
    2004: 35_648.55,
    2005: 36_952.94,
    2006: 38_651.41,
    2007: 40_405.48,
    2008: 41_334.97,
    2009: 40_711.61,
    2010: 41_673.83,
    2011: 42_979.61,
    2012: 44_321.67,
    2013: 44_888.16,
    2014: 46_481.52,
    2015: 48_098.63,
    2016: 48_642.15,
    2017: 50_321.89,
    2018: 52_145.80,
    2019: 54_099.99,
    2020: 55_628.60,
    2021: 60_575.07,
    2022: 63_795.13,
    2023: 66_621.80,
    2024: 69_846.57,
}

# PIA bend points are (first, second) by year of eligibility.
SSA_BEND_POINTS: Final[dict[int, tuple[float, float]]] = {
    2022: (1_024.0, 6_172.0),
    2023: (1_115.0, 6_721.0),
    2024: (1_174.0, 7_078.0),
    2025: (1_226.0, 7_391.0),
    2026: (1_286.0, 7_749.0),
}

# (birth_year_start, birth_year_end, normal_retirement_age_months, delayed_credit_per_year)
SSA_RETIREMENT_ADJUSTMENTS: Final[list[tuple[int, int, int, float]]] = [
    (1943, 1954, 66 * 12, 0.08),
    (1955, 1955, 66 * 12 + 2, 0.08),
    (1956, 1956, 66 * 12 + 4, 0.08),
    (1957, 1957, 66 * 12 + 6, 0.08),
    (1958, 1958, 66 * 12 + 8, 0.08),
    (1959, 1959, 66 * 12 + 10, 0.08),
    (1960, 2100, 67 * 12, 0.08),
]
