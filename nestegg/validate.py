"""Semantic validation and policy-coverage checks for snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from .dates import add_months, parse_iso
from .engine import resolve_run_window
from .policy import PolicyIndex
from .schema import SimulationSettings, Snapshot
from .state_taxes import INHERITANCE_TAX_POLICIES, STATE_TAX_POLICIES
from .tax_data import (
    BENEFICIARY_RELATIONSHIPS,
    FILING_STATUSES,
    FUNERAL_COSTS,
    INFLATION_TYPES,
    TAX_TYPES,
    WITHDRAWAL_ORDER_TYPES,
)

TAX_TREATMENTS = {"none", "ordinary", "capital_gains", "tax_exempt"}
PLAN_MODES = {"apply", "preview"}
RETURN_MODES = {"deterministic", "stochastic"}
SEQUENCE_MODELS = {"independent", "regime"}
CORRELATION_MODELS = {"none", "asset_class"}
GLIDEPATH_MODES = {"age", "year"}
EXCESS_HANDLING = {"spend", "taxable", "roth"}


@dataclass(slots=True)
class ValidationResult:
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors


def _check_enum(result: ValidationResult, path: str, value: str, allowed: Iterable[str]) -> None:
    allowed_set = set(allowed)
    if value not in allowed_set:
        expected = ", ".join(sorted(allowed_set))
        result.errors.append(f"{path}: '{value}' is not valid; expected one of [{expected}]")


def _check_date(result: ValidationResult, path: str, value: str | None, allow_null: bool = True) -> None:
    if value is None:
        if not allow_null:
            result.errors.append(f"{path}: date is required")
        return
    if parse_iso(value) is None:
        result.errors.append(f"{path}: '{value}' is not valid; expected YYYY-MM-DD")


def _check_date_range(result: ValidationResult, path: str, start: str | None, end: str | None) -> None:
    start_date = parse_iso(start)
    end_date = parse_iso(end)
    if start_date is not None and end_date is not None and start_date > end_date:
        result.errors.append(f"{path}: start_date must be <= end_date")


def _simulated_years(snapshot: Snapshot, settings: SimulationSettings) -> list[int]:
    try:
        start, months = resolve_run_window(snapshot, settings)
    except ValueError:
        return []
    return sorted({add_months(start, offset).year for offset in range(months)})


def check_policy_coverage(snapshot: Snapshot, settings: SimulationSettings) -> list[str]:
    """Warnings for simulated years served by a fallback policy row rather than an exact one."""
    warnings: list[str] = []
    status = snapshot.scenario.strategies.tax.filing_status
    years = _simulated_years(snapshot, settings)
    tables = snapshot.policies
    indexes = {
        "tax policy": PolicyIndex(tables.tax_policies, lambda item: item.filing_status),
        "IRMAA table": PolicyIndex(tables.irmaa_tables, lambda item: item.filing_status),
        "Social Security provisional bracket": PolicyIndex(tables.ss_brackets, lambda item: item.filing_status),
        "payroll policy": PolicyIndex(tables.payroll_policies, lambda item: item.filing_status),
    }
    for name, index in indexes.items():
        if not index.has_key(status):
            warnings.append(f"policies: no {name} for filing status '{status}'; its effect is treated as zero")
            continue
        missing = [year for year in years if not index.has_exact(status, year)]
        if missing:
            warnings.append(
                f"policies: no {name} for '{status}' in {_year_span(missing)}; nearest earlier year is used"
            )

    strategies = snapshot.scenario.strategies
    if strategies.rmd.enabled and not tables.rmd_table:
        warnings.append("policies.rmd_table: empty while RMDs are enabled; no RMD will be taken")

    conversion = strategies.roth_conversion
    if conversion.enabled:
        rate = conversion.target_bracket_rate
        if rate is None:
            warnings.append("scenario.strategies.roth_conversion.target_bracket_rate: not set; only min_conversion applies")
        else:
            rates = {
                bracket_rate
                for policy in tables.tax_policies
                if policy.filing_status == status
                for _, bracket_rate in policy.brackets
            }
            if not any(abs(bracket_rate - rate) < 1e-9 for bracket_rate in rates):
                warnings.append(
                    f"scenario.strategies.roth_conversion.target_bracket_rate: {rate} matches no bracket rate for "
                    f"'{status}'; the highest bracket at or below it is filled"
                )

    state_code = strategies.tax.state_code
    if state_code != "none" and state_code.lower() not in STATE_TAX_POLICIES:
        warnings.append(f"scenario.strategies.tax.state_code: no state policy for '{state_code}'; state tax is zero")
    return warnings


def _year_span(years: list[int]) -> str:
    if len(years) == 1:
        return str(years[0])
    return f"{years[0]}-{years[-1]} ({len(years)} years)"


def validate_snapshot(snapshot: Snapshot, settings: SimulationSettings | None = None) -> ValidationResult:
    result = ValidationResult()
    settings = settings or snapshot.settings
    strategies = snapshot.scenario.strategies

    if not snapshot.cash_accounts:
        result.errors.append("cash_accounts: at least one cash account is required")

    _check_date(result, "scenario.person.birth_date", snapshot.scenario.person.birth_date, allow_null=False)
    _check_date(result, "settings.start_date", settings.start_date, allow_null=False)
    if settings.months is not None and settings.months < 1:
        result.errors.append("settings.months: must be at least 1")
    _check_enum(result, "settings.plan_mode", settings.plan_mode, PLAN_MODES)

    holding_ids: set[str] = set()
    for idx, holding in enumerate(snapshot.holdings):
        base = f"holdings[{idx}]"
        if holding.id in holding_ids:
            result.errors.append(f"{base}.id: duplicate holding id '{holding.id}'")
        holding_ids.add(holding.id)
        _check_enum(result, f"{base}.tax_type", holding.tax_type, TAX_TYPES)
        if holding.balance < 0:
            result.errors.append(f"{base}.balance: must be >= 0")
        for lot_idx, entry in enumerate(holding.cost_basis_entries):
            _check_date(result, f"{base}.cost_basis_entries[{lot_idx}].date", entry.date, allow_null=False)
        if holding.tax_type == "taxable" and not holding.cost_basis_entries and holding.balance > 0:
            result.warnings.append(f"{base}.cost_basis_entries: none given; the whole balance is treated as gain")

    for idx, item in enumerate(snapshot.spending_items):
        base = f"spending_items[{idx}]"
        _check_enum(result, f"{base}.inflation_type", item.inflation_type, INFLATION_TYPES)
        _check_date(result, f"{base}.start_date", item.start_date)
        _check_date(result, f"{base}.end_date", item.end_date)
        _check_date_range(result, base, item.start_date, item.end_date)

    for idx, period in enumerate(snapshot.work_periods):
        base = f"work_periods[{idx}]"
        _check_date(result, f"{base}.start_date", period.start_date)
        _check_date(result, f"{base}.end_date", period.end_date)
        _check_date_range(result, base, period.start_date, period.end_date)
        if period.contribution_holding_id is not None and period.contribution_holding_id not in holding_ids:
            result.errors.append(
                f"{base}.contribution_holding_id: '{period.contribution_holding_id}' does not match any holding id"
            )

    if snapshot.social_security is not None:
        _check_date(result, "social_security.claim_date", snapshot.social_security.claim_date, allow_null=False)

    for idx, pension in enumerate(snapshot.pensions):
        base = f"pensions[{idx}]"
        _check_enum(result, f"{base}.tax_treatment", pension.tax_treatment, TAX_TREATMENTS)
        _check_enum(result, f"{base}.inflation_type", pension.inflation_type, INFLATION_TYPES)
        _check_date(result, f"{base}.start_date", pension.start_date)
        _check_date(result, f"{base}.end_date", pension.end_date)

    for idx, event in enumerate(snapshot.events):
        base = f"events[{idx}]"
        _check_date(result, f"{base}.date", event.date, allow_null=False)
        _check_enum(result, f"{base}.tax_treatment", event.tax_treatment, TAX_TREATMENTS)
        _check_enum(result, f"{base}.inflation_type", event.inflation_type, INFLATION_TYPES)

    for idx, kind in enumerate(strategies.withdrawal.order):
        _check_enum(result, f"scenario.strategies.withdrawal.order[{idx}]", kind, WITHDRAWAL_ORDER_TYPES)
    _check_enum(result, "scenario.strategies.tax.filing_status", strategies.tax.filing_status, FILING_STATUSES)
    if not 1 <= strategies.tax.payment_month <= 12:
        result.errors.append("scenario.strategies.tax.payment_month: must be between 1 and 12")
    _check_enum(result, "scenario.strategies.returns.mode", strategies.returns.mode, RETURN_MODES)
    _check_enum(result, "scenario.strategies.returns.sequence_model", strategies.returns.sequence_model, SEQUENCE_MODELS)
    _check_enum(
        result, "scenario.strategies.returns.correlation_model", strategies.returns.correlation_model, CORRELATION_MODELS
    )
    _check_enum(result, "scenario.strategies.glidepath.mode", strategies.glidepath.mode, GLIDEPATH_MODES)
    _check_enum(result, "scenario.strategies.healthcare.inflation_type", strategies.healthcare.inflation_type, INFLATION_TYPES)
    _check_enum(result, "scenario.strategies.rmd.excess_handling", strategies.rmd.excess_handling, EXCESS_HANDLING)
    for idx, tax_type in enumerate(strategies.rmd.account_types):
        _check_enum(result, f"scenario.strategies.rmd.account_types[{idx}]", tax_type, TAX_TYPES)

    conversion = strategies.roth_conversion
    if conversion.start_age is not None and conversion.end_age is not None and conversion.start_age > conversion.end_age:
        result.warnings.append("scenario.strategies.roth_conversion: start_age > end_age; no conversions will run")
    if conversion.max_conversion is not None and conversion.max_conversion < conversion.min_conversion:
        result.warnings.append(
            "scenario.strategies.roth_conversion: max_conversion < min_conversion; the maximum wins"
        )
    if (conversion.enabled or strategies.roth_ladder.enabled) and not any(
        holding.tax_type == "roth" for holding in snapshot.holdings
    ):
        result.warnings.append("scenario.strategies.roth_conversion: no roth holding to convert into")

    buffer = strategies.cash_buffer
    if buffer.min_months > buffer.target_months:
        result.warnings.append("scenario.strategies.cash_buffer: min_months > target_months; target is used as the floor")

    death = strategies.death
    _check_enum(result, "scenario.strategies.death.funeral_disposition", death.funeral_disposition, FUNERAL_COSTS)
    for idx, beneficiary in enumerate(death.beneficiaries):
        base = f"scenario.strategies.death.beneficiaries[{idx}]"
        _check_enum(result, f"{base}.relationship", beneficiary.relationship, BENEFICIARY_RELATIONSHIPS)
        if beneficiary.share_pct < 0:
            result.errors.append(f"{base}.share_pct: must be >= 0")
        state_code = beneficiary.state_of_residence.lower()
        if state_code != "none" and state_code not in INHERITANCE_TAX_POLICIES:
            result.warnings.append(
                f"{base}.state_of_residence: no inheritance tax policy for '{beneficiary.state_of_residence}'; "
                "its inheritance tax is zero"
            )
    if death.enabled and not death.beneficiaries:
        result.warnings.append("scenario.strategies.death.beneficiaries: none given; the estate is not split")

    if not result.errors:
        result.warnings.extend(check_policy_coverage(snapshot, settings))
    return result
