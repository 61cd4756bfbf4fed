import json

from nestegg.engine import run_simulation
from nestegg.report import render_summary, result_to_dict, write_json
from tests.helpers import load_sample_snapshot, sample_snapshot_data


def test_result_dict_is_json_ready(tmp_path):
    snapshot = load_sample_snapshot()
    result = run_simulation(snapshot)

    payload = result_to_dict(result)
    path = tmp_path / "result.json"
    write_json(path, payload)
    loaded = json.loads(path.read_text(encoding="utf-8"))

    assert loaded["seed"] == result.seed
    assert set(loaded["magi_history"]) == {"0", "1"}
    assert set(loaded["pending_tax_due"]) == {"1"}
    assert loaded["yearly"][0]["year"] == 2025
    assert loaded["monthly"][0]["date"] == "2025-01-01"
    assert loaded["cashflow_series"][0]["key"]


def test_result_dict_drops_zero_actions():
    result = run_simulation(load_sample_snapshot())
    payload = result_to_dict(result)

    assert all(action["resolved_amount"] != 0 for action in payload["actions"])
    assert len(payload["actions"]) == sum(1 for record in result.actions if record.resolved_amount != 0)


def test_summary_lists_headline_figures():
    snapshot = load_sample_snapshot()
    result = run_simulation(snapshot)

    text = render_summary(snapshot, result)

    lines = text.splitlines()
    assert lines[0] == "Scenario: Sample household"
    assert "Years: 2025-2026 (24 months)" in lines
    assert any(line.startswith("Roth conversions: $") for line in lines)
    assert any(line.startswith("Unpaid tax at end: $") for line in lines)
    assert "Deficit months: 0" in lines
    assert lines[-1] == f"Seed: {result.seed}"


def test_summary_without_conversions():
    data = sample_snapshot_data()
    data["scenario"]["strategies"]["roth_conversion"] = {"enabled": False}
    snapshot = load_sample_snapshot(data)

    text = render_summary(snapshot, run_simulation(snapshot))

    assert "Roth conversions" not in text
