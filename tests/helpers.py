import copy
from datetime import date
import json
from pathlib import Path

from nestegg.policy import PolicySet
from nestegg.schema import Snapshot
from nestegg.state import SimulationContext, YearPlan


def sample_snapshot_data() -> dict:
    return {
        "scenario": {
            "id": "sample",
            "name": "Sample household",
            "person": {"name": "Alex", "birth_date": "1965-03-10", "life_expectancy": 95},
            "strategies": {
                "inflation": {"cpi": 0.025},
                "returns": {"mode": "deterministic"},
                "withdrawal": {"order": ["taxable", "traditional", "roth", "hsa"]},
                "cash_buffer": {"target_months": 12, "min_months": 6, "max_months": 24},
                "roth_conversion": {"enabled": True, "target_bracket_rate": 0.12, "max_conversion": 40000},
                "healthcare": {"pre_medicare_monthly_premium": 600, "medicare_monthly_premium": 250},
                "tax": {"filing_status": "single", "state_code": "none", "state_tax_rate": 0.03},
            },
        },
        "cash_accounts": [{"id": "checking", "name": "Checking", "balance": 50000, "interest_rate": 0.02}],
        "holdings": [
            {
                "id": "brokerage",
                "account_id": "brokerage-acct",
                "tax_type": "taxable",
                "holding_type": "equity",
                "balance": 250000,
                "cost_basis_entries": [{"date": "2015-01-01", "amount": 180000}],
                "return_rate": 0.05,
                "return_std_dev": 0.15,
            },
            {
                "id": "ira",
                "account_id": "ira-acct",
                "tax_type": "traditional",
                "holding_type": "equity",
                "balance": 500000,
                "return_rate": 0.05,
                "return_std_dev": 0.15,
            },
            {
                "id": "roth",
                "account_id": "roth-acct",
                "tax_type": "roth",
                "holding_type": "bonds",
                "balance": 120000,
                "cost_basis_entries": [{"date": "2012-05-01", "amount": 70000}],
                "return_rate": 0.03,
                "return_std_dev": 0.05,
            },
        ],
        "spending_items": [
            {"id": "living", "name": "Living", "need_amount": 3500, "want_amount": 1500},
        ],
        "work_periods": [
            {
                "id": "job",
                "name": "Job",
                "salary": 120000,
                "start_date": "2018-01-01",
                "end_date": "2025-07-01",
                "contribution_pct": 0.10,
                "match_pct_cap": 0.05,
                "match_ratio": 0.5,
                "contribution_holding_id": "ira",
                "includes_health_insurance": True,
            }
        ],
        "social_security": {
            "claim_date": "2032-03-01",
            "earnings": [{"year": year, "amount": 90000} for year in range(1990, 2025)],
        },
        "settings": {"start_date": "2025-01-01", "months": 24},
    }


def load_sample_snapshot(data: dict | None = None) -> Snapshot:
    return Snapshot.from_dict(data if data is not None else sample_snapshot_data())


def write_snapshot(tmp_path: Path, data: dict, filename: str = "snapshot.json") -> Path:
    path = tmp_path / filename
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def clone_snapshot(data: dict) -> dict:
    return copy.deepcopy(data)


def make_context(
    snapshot: Snapshot,
    *,
    on: date = date(2025, 1, 1),
    start: date | None = None,
    age: float = 60.0,
    month_index: int = 0,
    plan_mode: str = "apply",
    year_plan: YearPlan | None = None,
    is_end_of_year: bool | None = None,
    is_final_month: bool = False,
) -> SimulationContext:
    start = start or on
    return SimulationContext(
        snapshot=snapshot,
        settings=snapshot.settings,
        policies=PolicySet(snapshot.policies, snapshot.scenario.strategies.inflation),
        start_date=start,
        date=on,
        month_index=month_index,
        year_index=on.year - start.year,
        age=age,
        is_start_of_year=on.month == 1 or month_index == 0,
        is_end_of_year=on.month == 12 if is_end_of_year is None else is_end_of_year,
        is_final_month=is_final_month,
        plan_mode=plan_mode,
        year_plan=year_plan or YearPlan(),
    )
