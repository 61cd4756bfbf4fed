"""CLI entry point for nestegg."""

from __future__ import annotations

import argparse
from dataclasses import replace
import logging
from pathlib import Path
import sys

from .engine import run_simulation
from .report import render_summary, result_to_dict, write_json
from .schema import SchemaError, SimulationSettings, Snapshot, load_snapshot
from .validate import validate_snapshot


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Month-by-month retirement projection")
    parser.add_argument("snapshot", help="Path to snapshot JSON file")
    parser.add_argument("-o", "--output", default="result.json", help="Output JSON path")
    parser.add_argument("--validate", action="store_true", help="Validate the snapshot only")
    parser.add_argument("--summary", action="store_true", help="Print text summary to stdout")
    parser.add_argument("--start-date", help="Override the start date (YYYY-MM-DD)")
    parser.add_argument("--months", type=int, help="Override the number of months simulated")
    parser.add_argument("--seed", type=int, help="Random seed for stochastic returns")
    parser.add_argument("--preview", action="store_true", help="Plan without applying conversions")
    parser.add_argument("--explain", action="store_true", help="Record explain traces")
    parser.add_argument(
        "--log-level",
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING)",
    )
    return parser


def _settings_from_args(snapshot: Snapshot, args: argparse.Namespace) -> SimulationSettings:
    settings = snapshot.settings
    overrides: dict[str, object] = {}
    if args.start_date is not None:
        overrides["start_date"] = args.start_date
    if args.months is not None:
        overrides["months"] = args.months
    if args.seed is not None:
        overrides["seed"] = args.seed
    if args.preview:
        overrides["plan_mode"] = "preview"
    if args.explain:
        overrides["explain"] = True
    return replace(settings, **overrides)


def _print_validation(errors: list[str], warnings: list[str]) -> None:
    for warning in warnings:
        print(f"WARNING: {warning}")
    for error in errors:
        print(f"ERROR: {error}", file=sys.stderr)


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=getattr(logging, args.log_level), format="%(levelname)s %(name)s: %(message)s")

    try:
        snapshot = load_snapshot(args.snapshot)
    except (SchemaError, OSError, ValueError) as exc:
        print(f"Failed to load snapshot: {exc}", file=sys.stderr)
        return 2

    settings = _settings_from_args(snapshot, args)
    validation = validate_snapshot(snapshot, settings)
    _print_validation(validation.errors, validation.warnings)
    if not validation.is_valid:
        return 1

    if args.validate:
        print("Snapshot is valid.")
        return 0

    result = run_simulation(snapshot, settings)
    write_json(args.output, result_to_dict(result))
    if args.summary:
        print(render_summary(snapshot, result))
    print(f"Wrote result to {Path(args.output)}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
