"""Result serialisation and plain-text summary."""

from __future__ import annotations

from dataclasses import asdict
import json
from pathlib import Path

from .engine import SimulationResult
from .schema import Snapshot


def _money(value: float) -> str:
    return f"${value:,.0f}"


def result_to_dict(result: SimulationResult) -> dict[str, object]:
    """JSON-ready view of a run. Integer-keyed maps become string-keyed."""
    return {
        "seed": result.seed,
        "start_date": result.start_date,
        "months": result.months,
        "monthly": [asdict(row) for row in result.monthly],
        "yearly": [asdict(row) for row in result.yearly],
        "actions": [asdict(record) for record in result.actions if record.resolved_amount != 0],
        "cashflow_series": [asdict(entry) for entry in result.cashflow_series],
        "explain": [asdict(trace) for trace in result.explain],
        "magi_history": {str(year): value for year, value in sorted(result.magi_history.items())},
        "tax_history": {str(year): value for year, value in sorted(result.tax_history.items())},
        "pending_tax_due": {str(year): value for year, value in sorted(result.pending_tax_due.items())},
        "deficit_months": list(result.deficit_months),
        "legacy": asdict(result.legacy) if result.legacy is not None else None,
    }


def write_json(path: str | Path, payload: dict[str, object]) -> None:
    Path(path).write_text(json.dumps(payload, indent=2, sort_keys=False) + "\n", encoding="utf-8")


def render_summary(snapshot: Snapshot, result: SimulationResult) -> str:
    lines = [f"Scenario: {snapshot.scenario.name}"]
    if result.yearly:
        first = result.yearly[0]
        last = result.yearly[-1]
        lines.append(f"Years: {first.year}-{last.year} ({result.months} months)")
        lines.append(f"Starting balance: {_money(result.monthly[0].total_balance)}")
        lines.append(f"Ending balance: {_money(last.total_balance)}")
        lines.append(f"Total taxes: {_money(sum(row.taxes for row in result.yearly))}")
        lines.append(f"Total withdrawals: {_money(sum(row.withdrawals for row in result.yearly))}")
    conversions = sum(
        record.resolved_amount for record in result.actions if record.intent.kind == "convert"
    )
    if conversions > 0:
        lines.append(f"Roth conversions: {_money(conversions)}")
    if result.pending_tax_due:
        lines.append(f"Unpaid tax at end: {_money(sum(result.pending_tax_due.values()))}")
    if result.legacy is not None:
        lines.append(f"Net legacy: {_money(result.legacy.net_estate)}")
    lines.append(f"Deficit months: {len(result.deficit_months)}")
    lines.append(f"Seed: {result.seed}")
    return "\n".join(lines)
