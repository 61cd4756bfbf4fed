"""Snapshot schema dataclasses and JSON loading."""

from __future__ import annotations

from dataclasses import dataclass, field
import json
from pathlib import Path
from typing import Any

from . import tax_data


class SchemaError(ValueError):
    """Raised when raw JSON cannot be parsed into schema objects."""


def _expect_dict(value: Any, path: str) -> dict[str, Any]:
    if not isinstance(value, dict):
        raise SchemaError(f"{path}: expected object")
    return value


def _expect_list(value: Any, path: str) -> list[Any]:
    if not isinstance(value, list):
        raise SchemaError(f"{path}: expected array")
    return value


def _require(data: dict[str, Any], key: str, path: str) -> Any:
    if key not in data:
        raise SchemaError(f"{path}.{key}: missing required field")
    return data[key]


def _optional(data: dict[str, Any], key: str, default: Any = None) -> Any:
    return data.get(key, default)


def _optional_float(data: dict[str, Any], key: str, default: float | None = None) -> float | None:
    value = data.get(key)
    if value is None:
        return default
    return float(value)


def _block(data: dict[str, Any], key: str, path: str) -> dict[str, Any]:
    return _expect_dict(_optional(data, key, {}), f"{path}.{key}")


def _items(data: dict[str, Any], key: str, path: str) -> list[tuple[dict[str, Any], str]]:
    """Return (item, item_path) pairs for an optional array of objects."""
    out: list[tuple[dict[str, Any], str]] = []
    for idx, item in enumerate(_expect_list(_optional(data, key, []), f"{path}{key}")):
        item_path = f"{path}{key}[{idx}]"
        out.append((_expect_dict(item, item_path), item_path))
    return out


# ---------------------------------------------------------------------------
# Household and accounts


@dataclass(slots=True)
class Person:
    name: str
    birth_date: str
    life_expectancy: int = 95

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Person":
        return cls(
            name=_require(data, "name", path),
            birth_date=_require(data, "birth_date", path),
            life_expectancy=int(_optional(data, "life_expectancy", 95)),
        )


@dataclass(slots=True)
class CashAccount:
    id: str
    name: str
    balance: float
    interest_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CashAccount":
        account_id = _require(data, "id", path)
        return cls(
            id=account_id,
            name=_optional(data, "name", account_id),
            balance=float(_require(data, "balance", path)),
            interest_rate=float(_optional(data, "interest_rate", 0.0)),
        )


@dataclass(slots=True)
class CostBasisEntry:
    date: str
    amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CostBasisEntry":
        return cls(date=_require(data, "date", path), amount=float(_require(data, "amount", path)))


@dataclass(slots=True)
class Holding:
    id: str
    name: str
    account_id: str
    tax_type: str
    holding_type: str
    balance: float
    cost_basis_entries: list[CostBasisEntry] = field(default_factory=list)
    return_rate: float = 0.0
    return_std_dev: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Holding":
        holding_id = _require(data, "id", path)
        return cls(
            id=holding_id,
            name=_optional(data, "name", holding_id),
            account_id=_optional(data, "account_id", holding_id),
            tax_type=_require(data, "tax_type", path),
            holding_type=_optional(data, "holding_type", "equity"),
            balance=float(_require(data, "balance", path)),
            cost_basis_entries=[
                CostBasisEntry.from_dict(item, item_path)
                for item, item_path in _items(data, "cost_basis_entries", f"{path}.")
            ],
            return_rate=float(_optional(data, "return_rate", 0.0)),
            return_std_dev=float(_optional(data, "return_std_dev", 0.0)),
        )


# ---------------------------------------------------------------------------
# Cashflow sources


@dataclass(slots=True)
class SpendingItem:
    """Monthly spending line with an essential (need) and discretionary (want) part."""

    id: str
    name: str
    need_amount: float = 0.0
    want_amount: float = 0.0
    start_date: str | None = None
    end_date: str | None = None
    inflation_type: str = "cpi"
    is_pre_tax: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SpendingItem":
        item_id = _require(data, "id", path)
        if "need_amount" not in data and "want_amount" not in data:
            raise SchemaError(f"{path}: expected need_amount or want_amount")
        return cls(
            id=item_id,
            name=_optional(data, "name", item_id),
            need_amount=float(_optional(data, "need_amount", 0.0)),
            want_amount=float(_optional(data, "want_amount", 0.0)),
            start_date=_optional(data, "start_date"),
            end_date=_optional(data, "end_date"),
            inflation_type=_optional(data, "inflation_type", "cpi"),
            is_pre_tax=bool(_optional(data, "is_pre_tax", False)),
        )


@dataclass(slots=True)
class WorkPeriod:
    id: str
    name: str
    salary: float
    bonus: float = 0.0
    start_date: str | None = None
    end_date: str | None = None
    contribution_pct: float = 0.0
    match_pct_cap: float = 0.0
    match_ratio: float = 0.0
    contribution_holding_id: str | None = None
    includes_health_insurance: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "WorkPeriod":
        period_id = _require(data, "id", path)
        return cls(
            id=period_id,
            name=_optional(data, "name", period_id),
            salary=float(_require(data, "salary", path)),
            bonus=float(_optional(data, "bonus", 0.0)),
            start_date=_optional(data, "start_date"),
            end_date=_optional(data, "end_date"),
            contribution_pct=float(_optional(data, "contribution_pct", 0.0)),
            match_pct_cap=float(_optional(data, "match_pct_cap", 0.0)),
            match_ratio=float(_optional(data, "match_ratio", 0.0)),
            contribution_holding_id=_optional(data, "contribution_holding_id"),
            includes_health_insurance=bool(_optional(data, "includes_health_insurance", False)),
        )


@dataclass(slots=True)
class EarningsRecord:
    year: int
    amount: float
    months: int = 12

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "EarningsRecord":
        return cls(
            year=int(_require(data, "year", path)),
            amount=float(_require(data, "amount", path)),
            months=int(_optional(data, "months", 12)),
        )


@dataclass(slots=True)
class SocialSecurity:
    claim_date: str
    earnings: list[EarningsRecord] = field(default_factory=list)
    enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "social_security") -> "SocialSecurity":
        return cls(
            claim_date=_require(data, "claim_date", path),
            earnings=[EarningsRecord.from_dict(item, item_path) for item, item_path in _items(data, "earnings", f"{path}.")],
            enabled=bool(_optional(data, "enabled", True)),
        )


@dataclass(slots=True)
class Pension:
    id: str
    name: str
    monthly_amount: float
    start_date: str | None = None
    end_date: str | None = None
    inflation_type: str = "none"
    tax_treatment: str = "ordinary"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Pension":
        pension_id = _require(data, "id", path)
        return cls(
            id=pension_id,
            name=_optional(data, "name", pension_id),
            monthly_amount=float(_require(data, "monthly_amount", path)),
            start_date=_optional(data, "start_date"),
            end_date=_optional(data, "end_date"),
            inflation_type=_optional(data, "inflation_type", "none"),
            tax_treatment=_optional(data, "tax_treatment", "ordinary"),
        )


@dataclass(slots=True)
class CashflowEvent:
    id: str
    name: str
    date: str
    amount: float
    tax_treatment: str = "none"
    inflation_type: str = "none"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CashflowEvent":
        event_id = _require(data, "id", path)
        return cls(
            id=event_id,
            name=_optional(data, "name", event_id),
            date=_require(data, "date", path),
            amount=float(_require(data, "amount", path)),
            tax_treatment=_optional(data, "tax_treatment", "none"),
            inflation_type=_optional(data, "inflation_type", "none"),
        )


# ---------------------------------------------------------------------------
# Strategies


@dataclass(slots=True)
class InflationAssumptions:
    cpi: float = 0.025
    medical: float = 0.05
    housing: float = 0.03
    education: float = 0.05
    index: list[float] | None = None
    index_start: str | None = None

    def rate_for(self, inflation_type: str) -> float:
        if inflation_type == "none":
            return 0.0
        if inflation_type == "medical":
            return self.medical
        if inflation_type == "housing":
            return self.housing
        if inflation_type == "education":
            return self.education
        return self.cpi

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "InflationAssumptions":
        index_raw = _optional(data, "index")
        index = None
        if index_raw is not None:
            index = [float(value) for value in _expect_list(index_raw, f"{path}.index")]
        return cls(
            cpi=float(_optional(data, "cpi", 0.025)),
            medical=float(_optional(data, "medical", 0.05)),
            housing=float(_optional(data, "housing", 0.03)),
            education=float(_optional(data, "education", 0.05)),
            index=index,
            index_start=_optional(data, "index_start"),
        )


@dataclass(slots=True)
class ReturnModelStrategy:
    mode: str = "deterministic"
    sequence_model: str = "independent"
    correlation_model: str = "none"
    volatility_scale: float = 1.0
    seed: int | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ReturnModelStrategy":
        seed = _optional(data, "seed")
        return cls(
            mode=_optional(data, "mode", "deterministic"),
            sequence_model=_optional(data, "sequence_model", "independent"),
            correlation_model=_optional(data, "correlation_model", "none"),
            volatility_scale=float(_optional(data, "volatility_scale", 1.0)),
            seed=None if seed is None else int(seed),
        )


@dataclass(slots=True)
class GlidepathTarget:
    """Asset-class weights at an age (or simulation year); weights are normalised on use."""

    key: float
    equity: float = 0.0
    bonds: float = 0.0
    real_estate: float = 0.0
    other: float = 0.0

    def weights(self) -> dict[str, float]:
        return {"equity": self.equity, "bonds": self.bonds, "real_estate": self.real_estate, "other": self.other}

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "GlidepathTarget":
        return cls(
            key=float(_require(data, "key", path)),
            equity=float(_optional(data, "equity", 0.0)),
            bonds=float(_optional(data, "bonds", 0.0)),
            real_estate=float(_optional(data, "real_estate", 0.0)),
            other=float(_optional(data, "other", 0.0)),
        )


@dataclass(slots=True)
class GlidepathStrategy:
    mode: str = "age"
    targets: list[GlidepathTarget] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "GlidepathStrategy":
        return cls(
            mode=_optional(data, "mode", "age"),
            targets=[GlidepathTarget.from_dict(item, item_path) for item, item_path in _items(data, "targets", f"{path}.")],
        )


@dataclass(slots=True)
class RebalancingStrategy:
    enabled: bool = False
    frequency: str = "annual"
    drift_threshold: float = 0.05
    tax_aware: bool = True
    min_trade_amount: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RebalancingStrategy":
        frequency = _optional(data, "frequency", "annual")
        if frequency not in ("monthly", "quarterly", "annual", "threshold"):
            raise SchemaError(f"{path}.frequency: unknown frequency {frequency!r}")
        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            frequency=frequency,
            drift_threshold=float(_optional(data, "drift_threshold", 0.05)),
            tax_aware=bool(_optional(data, "tax_aware", True)),
            min_trade_amount=float(_optional(data, "min_trade_amount", 0.0)),
        )


@dataclass(slots=True)
class CashBufferStrategy:
    target_months: float = 12.0
    min_months: float = 6.0
    max_months: float = 24.0
    # withdrawal_order, pro_rata, taxable_first or tax_deferred_first
    refill_priority: str = "withdrawal_order"

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CashBufferStrategy":
        refill = _optional(data, "refill_priority", "withdrawal_order")
        if refill not in ("withdrawal_order", "pro_rata", "taxable_first", "tax_deferred_first"):
            raise SchemaError(f"{path}.refill_priority: unknown value {refill!r}")
        return cls(
            target_months=float(_optional(data, "target_months", 12.0)),
            min_months=float(_optional(data, "min_months", 6.0)),
            max_months=float(_optional(data, "max_months", 24.0)),
            refill_priority=refill,
        )


@dataclass(slots=True)
class HealthPoint:
    health: float
    factor: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "HealthPoint":
        return cls(health=float(_require(data, "health", path)), factor=float(_require(data, "factor", path)))


GUARDRAIL_STRATEGIES = ("none", "legacy", "cap_wants", "portfolio_health", "guyton")


@dataclass(slots=True)
class WithdrawalStrategy:
    order: list[str] = field(default_factory=lambda: ["taxable", "traditional", "roth", "hsa"])
    avoid_early_penalty: bool = True
    taxable_gain_harvest_target: float = 0.0
    guardrail_strategy: str = "none"
    guardrail_pct: float = 0.2
    guardrail_withdrawal_rate_limit: float = 0.0
    guardrail_health_points: list[HealthPoint] = field(default_factory=list)
    guyton_trigger_rate_increase: float = 0.2
    guyton_applied_pct: float = 0.1
    guyton_duration_months: int = 12

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "WithdrawalStrategy":
        order = _optional(data, "order")
        guardrail = _optional(data, "guardrail_strategy", "none")
        if guardrail not in GUARDRAIL_STRATEGIES:
            raise SchemaError(f"{path}.guardrail_strategy: unknown strategy {guardrail!r}")
        return cls(
            order=(
                [str(item) for item in _expect_list(order, f"{path}.order")]
                if order is not None
                else ["taxable", "traditional", "roth", "hsa"]
            ),
            avoid_early_penalty=bool(_optional(data, "avoid_early_penalty", True)),
            taxable_gain_harvest_target=float(_optional(data, "taxable_gain_harvest_target", 0.0)),
            guardrail_strategy=guardrail,
            guardrail_pct=float(_optional(data, "guardrail_pct", 0.2)),
            guardrail_withdrawal_rate_limit=float(_optional(data, "guardrail_withdrawal_rate_limit", 0.0)),
            guardrail_health_points=[
                HealthPoint.from_dict(item, item_path)
                for item, item_path in _items(data, "guardrail_health_points", f"{path}.")
            ],
            guyton_trigger_rate_increase=float(_optional(data, "guyton_trigger_rate_increase", 0.2)),
            guyton_applied_pct=float(_optional(data, "guyton_applied_pct", 0.1)),
            guyton_duration_months=int(_optional(data, "guyton_duration_months", 12)),
        )


@dataclass(slots=True)
class TaxableLotStrategy:
    harvest_losses: bool = False
    gain_harvest_target: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxableLotStrategy":
        return cls(
            harvest_losses=bool(_optional(data, "harvest_losses", False)),
            gain_harvest_target=float(_optional(data, "gain_harvest_target", 0.0)),
        )


@dataclass(slots=True)
class EarlyRetirementStrategy:
    allow_penalty: bool = False
    penalty_rate: float = 0.10
    use_72t: bool = False
    bridge_cash_years: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "EarlyRetirementStrategy":
        return cls(
            allow_penalty=bool(_optional(data, "allow_penalty", False)),
            penalty_rate=float(_optional(data, "penalty_rate", 0.10)),
            use_72t=bool(_optional(data, "use_72t", False)),
            bridge_cash_years=float(_optional(data, "bridge_cash_years", 0.0)),
        )


@dataclass(slots=True)
class RothConversionStrategy:
    enabled: bool = False
    start_age: float | None = None
    end_age: float | None = None
    target_bracket_rate: float | None = None
    min_conversion: float = 0.0
    max_conversion: float | None = None
    respect_irmaa: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RothConversionStrategy":
        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            start_age=_optional_float(data, "start_age"),
            end_age=_optional_float(data, "end_age"),
            target_bracket_rate=_optional_float(data, "target_bracket_rate"),
            min_conversion=float(_optional(data, "min_conversion", 0.0)),
            max_conversion=_optional_float(data, "max_conversion"),
            respect_irmaa=bool(_optional(data, "respect_irmaa", True)),
        )


@dataclass(slots=True)
class RothLadderStrategy:
    enabled: bool = False
    annual_amount: float = 0.0
    start_age: float | None = None
    end_age: float | None = None
    # Conversions run this many years ahead of the spending ages they fund.
    lead_time_years: float = 5.0
    # Used when annual_amount is zero.
    target_after_tax_spending: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RothLadderStrategy":
        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            annual_amount=float(_optional(data, "annual_amount", 0.0)),
            start_age=_optional_float(data, "start_age"),
            end_age=_optional_float(data, "end_age"),
            lead_time_years=float(_optional(data, "lead_time_years", 5.0)),
            target_after_tax_spending=float(_optional(data, "target_after_tax_spending", 0.0)),
        )


@dataclass(slots=True)
class RmdStrategy:
    enabled: bool = True
    start_age: float = 73.0
    account_types: list[str] = field(default_factory=lambda: ["traditional"])
    excess_handling: str = "spend"
    withholding_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RmdStrategy":
        account_types = _optional(data, "account_types")
        return cls(
            enabled=bool(_optional(data, "enabled", True)),
            start_age=float(_optional(data, "start_age", 73.0)),
            account_types=(
                [str(item) for item in _expect_list(account_types, f"{path}.account_types")]
                if account_types is not None
                else ["traditional"]
            ),
            excess_handling=_optional(data, "excess_handling", "spend"),
            withholding_rate=float(_optional(data, "withholding_rate", 0.0)),
        )


@dataclass(slots=True)
class CharitableStrategy:
    annual_giving: float = 0.0
    use_qcd: bool = False
    qcd_annual_amount: float = 0.0
    start_date: str | None = None
    end_date: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "CharitableStrategy":
        return cls(
            annual_giving=float(_optional(data, "annual_giving", 0.0)),
            use_qcd=bool(_optional(data, "use_qcd", False)),
            qcd_annual_amount=float(_optional(data, "qcd_annual_amount", 0.0)),
            start_date=_optional(data, "start_date"),
            end_date=_optional(data, "end_date"),
        )


@dataclass(slots=True)
class HealthcareStrategy:
    pre_medicare_monthly_premium: float = 0.0
    medicare_monthly_premium: float = 0.0
    inflation_type: str = "medical"
    irmaa_enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "HealthcareStrategy":
        return cls(
            pre_medicare_monthly_premium=float(_optional(data, "pre_medicare_monthly_premium", 0.0)),
            medicare_monthly_premium=float(_optional(data, "medicare_monthly_premium", 0.0)),
            inflation_type=_optional(data, "inflation_type", "medical"),
            irmaa_enabled=bool(_optional(data, "irmaa_enabled", True)),
        )


@dataclass(slots=True)
class TaxStrategy:
    filing_status: str = "single"
    state_code: str = "none"
    state_tax_rate: float = 0.0
    use_standard_deduction: bool = True
    apply_capital_gains_rates: bool = True
    payment_month: int = 4
    withholding_enabled: bool = True

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxStrategy":
        return cls(
            filing_status=_optional(data, "filing_status", "single"),
            state_code=_optional(data, "state_code", "none"),
            state_tax_rate=float(_optional(data, "state_tax_rate", 0.0)),
            use_standard_deduction=bool(_optional(data, "use_standard_deduction", True)),
            apply_capital_gains_rates=bool(_optional(data, "apply_capital_gains_rates", True)),
            payment_month=int(_optional(data, "payment_month", 4)),
            withholding_enabled=bool(_optional(data, "withholding_enabled", True)),
        )


@dataclass(slots=True)
class Beneficiary:
    name: str
    share_pct: float = 0.0
    relationship: str = "child"
    state_of_residence: str = "none"
    assumed_ordinary_rate: float = 0.0
    assumed_capital_gains_rate: float = 0.0

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "Beneficiary":
        return cls(
            name=_require(data, "name", path),
            share_pct=float(_optional(data, "share_pct", 0.0)),
            relationship=_optional(data, "relationship", "child"),
            state_of_residence=_optional(data, "state_of_residence", "none"),
            assumed_ordinary_rate=float(_optional(data, "assumed_ordinary_rate", 0.0)),
            assumed_capital_gains_rate=float(_optional(data, "assumed_capital_gains_rate", 0.0)),
        )


@dataclass(slots=True)
class DeathStrategy:
    enabled: bool = False
    # funeral, burial or cremation
    funeral_disposition: str = "funeral"
    funeral_cost_override: float = 0.0
    estate_tax_exemption: float = 13_610_000.0
    estate_tax_rate: float = 0.40
    taxable_step_up: bool = True
    beneficiaries: list[Beneficiary] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "DeathStrategy":
        return cls(
            enabled=bool(_optional(data, "enabled", False)),
            funeral_disposition=_optional(data, "funeral_disposition", "funeral"),
            funeral_cost_override=float(_optional(data, "funeral_cost_override", 0.0)),
            estate_tax_exemption=float(_optional(data, "estate_tax_exemption", 13_610_000.0)),
            estate_tax_rate=float(_optional(data, "estate_tax_rate", 0.40)),
            taxable_step_up=bool(_optional(data, "taxable_step_up", True)),
            beneficiaries=[
                Beneficiary.from_dict(item, item_path) for item, item_path in _items(data, "beneficiaries", f"{path}.")
            ],
        )


@dataclass(slots=True)
class Strategies:
    inflation: InflationAssumptions = field(default_factory=InflationAssumptions)
    returns: ReturnModelStrategy = field(default_factory=ReturnModelStrategy)
    glidepath: GlidepathStrategy = field(default_factory=GlidepathStrategy)
    rebalancing: RebalancingStrategy = field(default_factory=RebalancingStrategy)
    cash_buffer: CashBufferStrategy = field(default_factory=CashBufferStrategy)
    withdrawal: WithdrawalStrategy = field(default_factory=WithdrawalStrategy)
    taxable_lots: TaxableLotStrategy = field(default_factory=TaxableLotStrategy)
    early_retirement: EarlyRetirementStrategy = field(default_factory=EarlyRetirementStrategy)
    roth_conversion: RothConversionStrategy = field(default_factory=RothConversionStrategy)
    roth_ladder: RothLadderStrategy = field(default_factory=RothLadderStrategy)
    rmd: RmdStrategy = field(default_factory=RmdStrategy)
    charitable: CharitableStrategy = field(default_factory=CharitableStrategy)
    healthcare: HealthcareStrategy = field(default_factory=HealthcareStrategy)
    tax: TaxStrategy = field(default_factory=TaxStrategy)
    death: DeathStrategy = field(default_factory=DeathStrategy)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "scenario.strategies") -> "Strategies":
        return cls(
            inflation=InflationAssumptions.from_dict(_block(data, "inflation", path), f"{path}.inflation"),
            returns=ReturnModelStrategy.from_dict(_block(data, "returns", path), f"{path}.returns"),
            glidepath=GlidepathStrategy.from_dict(_block(data, "glidepath", path), f"{path}.glidepath"),
            rebalancing=RebalancingStrategy.from_dict(_block(data, "rebalancing", path), f"{path}.rebalancing"),
            cash_buffer=CashBufferStrategy.from_dict(_block(data, "cash_buffer", path), f"{path}.cash_buffer"),
            withdrawal=WithdrawalStrategy.from_dict(_block(data, "withdrawal", path), f"{path}.withdrawal"),
            taxable_lots=TaxableLotStrategy.from_dict(_block(data, "taxable_lots", path), f"{path}.taxable_lots"),
            early_retirement=EarlyRetirementStrategy.from_dict(
                _block(data, "early_retirement", path), f"{path}.early_retirement"
            ),
            roth_conversion=RothConversionStrategy.from_dict(
                _block(data, "roth_conversion", path), f"{path}.roth_conversion"
            ),
            roth_ladder=RothLadderStrategy.from_dict(_block(data, "roth_ladder", path), f"{path}.roth_ladder"),
            rmd=RmdStrategy.from_dict(_block(data, "rmd", path), f"{path}.rmd"),
            charitable=CharitableStrategy.from_dict(_block(data, "charitable", path), f"{path}.charitable"),
            healthcare=HealthcareStrategy.from_dict(_block(data, "healthcare", path), f"{path}.healthcare"),
            tax=TaxStrategy.from_dict(_block(data, "tax", path), f"{path}.tax"),
            death=DeathStrategy.from_dict(_block(data, "death", path), f"{path}.death"),
        )


@dataclass(slots=True)
class Scenario:
    id: str
    name: str
    person: Person
    strategies: Strategies = field(default_factory=Strategies)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "scenario") -> "Scenario":
        scenario_id = _require(data, "id", path)
        return cls(
            id=scenario_id,
            name=_optional(data, "name", scenario_id),
            person=Person.from_dict(_expect_dict(_require(data, "person", path), f"{path}.person"), f"{path}.person"),
            strategies=Strategies.from_dict(_block(data, "strategies", path), f"{path}.strategies"),
        )


# ---------------------------------------------------------------------------
# Policy tables


def _parse_brackets(raw: Any, path: str) -> list[tuple[float | None, float]]:
    brackets: list[tuple[float | None, float]] = []
    for idx, item in enumerate(_expect_list(raw, path)):
        entry = _expect_dict(item, f"{path}[{idx}]")
        upper = _optional(entry, "up_to")
        brackets.append((None if upper is None else float(upper), float(_require(entry, "rate", f"{path}[{idx}]"))))
    return brackets


@dataclass(slots=True)
class TaxPolicy:
    year: int
    filing_status: str
    brackets: list[tuple[float | None, float]]
    standard_deduction: float
    capital_gains_brackets: list[tuple[float | None, float]] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "TaxPolicy":
        return cls(
            year=int(_require(data, "year", path)),
            filing_status=_require(data, "filing_status", path),
            brackets=_parse_brackets(_require(data, "brackets", path), f"{path}.brackets"),
            standard_deduction=float(_require(data, "standard_deduction", path)),
            capital_gains_brackets=_parse_brackets(
                _optional(data, "capital_gains_brackets", []), f"{path}.capital_gains_brackets"
            ),
        )


@dataclass(slots=True)
class SsProvisionalBracket:
    year: int
    filing_status: str
    base_amount: float
    adjusted_base_amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "SsProvisionalBracket":
        return cls(
            year=int(_require(data, "year", path)),
            filing_status=_require(data, "filing_status", path),
            base_amount=float(_require(data, "base_amount", path)),
            adjusted_base_amount=float(_require(data, "adjusted_base_amount", path)),
        )


@dataclass(slots=True)
class IrmaaTable:
    year: int
    filing_status: str
    tiers: list[tuple[float | None, float, float]]
    lookback_years: int = tax_data.IRMAA_LOOKBACK_YEARS

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "IrmaaTable":
        tiers: list[tuple[float | None, float, float]] = []
        for tier, tier_path in _items(data, "tiers", f"{path}."):
            max_magi = _optional(tier, "max_magi")
            tiers.append(
                (
                    None if max_magi is None else float(max_magi),
                    float(_optional(tier, "part_b", 0.0)),
                    float(_optional(tier, "part_d", 0.0)),
                )
            )
        return cls(
            year=int(_require(data, "year", path)),
            filing_status=_require(data, "filing_status", path),
            tiers=tiers,
            lookback_years=int(_optional(data, "lookback_years", tax_data.IRMAA_LOOKBACK_YEARS)),
        )


@dataclass(slots=True)
class PayrollPolicy:
    year: int
    filing_status: str
    social_security_wage_base: float
    additional_medicare_threshold: float
    social_security_rate: float = 0.062
    medicare_rate: float = 0.0145
    additional_medicare_rate: float = 0.009

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "PayrollPolicy":
        return cls(
            year=int(_require(data, "year", path)),
            filing_status=_require(data, "filing_status", path),
            social_security_wage_base=float(_require(data, "social_security_wage_base", path)),
            additional_medicare_threshold=float(_require(data, "additional_medicare_threshold", path)),
            social_security_rate=float(_optional(data, "social_security_rate", 0.062)),
            medicare_rate=float(_optional(data, "medicare_rate", 0.0145)),
            additional_medicare_rate=float(_optional(data, "additional_medicare_rate", 0.009)),
        )


@dataclass(slots=True)
class ContributionLimit:
    year: int
    tax_type: str
    amount: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "ContributionLimit":
        return cls(
            year=int(_require(data, "year", path)),
            tax_type=_require(data, "tax_type", path),
            amount=float(_require(data, "amount", path)),
        )


@dataclass(slots=True)
class RetirementAdjustment:
    birth_year_start: int
    birth_year_end: int
    normal_retirement_age_months: int
    delayed_credit_per_year: float

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str) -> "RetirementAdjustment":
        return cls(
            birth_year_start=int(_require(data, "birth_year_start", path)),
            birth_year_end=int(_require(data, "birth_year_end", path)),
            normal_retirement_age_months=int(_require(data, "normal_retirement_age_months", path)),
            delayed_credit_per_year=float(_require(data, "delayed_credit_per_year", path)),
        )


def default_tax_policies() -> list[TaxPolicy]:
    return [
        TaxPolicy(
            year=year,
            filing_status=status,
            brackets=list(brackets),
            standard_deduction=tax_data.STANDARD_DEDUCTIONS[year][status],
            capital_gains_brackets=list(tax_data.CAPITAL_GAINS_BRACKETS[year][status]),
        )
        for year, by_status in tax_data.FEDERAL_BRACKETS.items()
        for status, brackets in by_status.items()
    ]


def default_ss_brackets() -> list[SsProvisionalBracket]:
    return [
        SsProvisionalBracket(year=year, filing_status=status, base_amount=base, adjusted_base_amount=adjusted)
        for year, by_status in tax_data.SOCIAL_SECURITY_THRESHOLDS.items()
        for status, (base, adjusted) in by_status.items()
    ]


def default_irmaa_tables() -> list[IrmaaTable]:
    return [
        IrmaaTable(year=year, filing_status=status, tiers=list(tiers))
        for year, by_status in tax_data.IRMAA_BRACKETS.items()
        for status, tiers in by_status.items()
    ]


def default_payroll_policies() -> list[PayrollPolicy]:
    return [
        PayrollPolicy(
            year=year,
            filing_status=status,
            social_security_wage_base=wage_base,
            additional_medicare_threshold=threshold,
            social_security_rate=tax_data.PAYROLL_RATES["social_security_rate"],
            medicare_rate=tax_data.PAYROLL_RATES["medicare_rate"],
            additional_medicare_rate=tax_data.PAYROLL_RATES["additional_medicare_rate"],
        )
        for year, wage_base in tax_data.SOCIAL_SECURITY_WAGE_BASES.items()
        for status, threshold in tax_data.ADDITIONAL_MEDICARE_THRESHOLDS.items()
    ]


def default_contribution_limits() -> list[ContributionLimit]:
    return [
        ContributionLimit(year=year, tax_type=tax_type, amount=amount)
        for year, limits in tax_data.CONTRIBUTION_LIMITS.items()
        for tax_type, amount in limits.items()
    ]


def default_retirement_adjustments() -> list[RetirementAdjustment]:
    return [RetirementAdjustment(*row) for row in tax_data.SSA_RETIREMENT_ADJUSTMENTS]


@dataclass(slots=True)
class PolicyTables:
    tax_policies: list[TaxPolicy] = field(default_factory=default_tax_policies)
    ss_brackets: list[SsProvisionalBracket] = field(default_factory=default_ss_brackets)
    irmaa_tables: list[IrmaaTable] = field(default_factory=default_irmaa_tables)
    payroll_policies: list[PayrollPolicy] = field(default_factory=default_payroll_policies)
    contribution_limits: list[ContributionLimit] = field(default_factory=default_contribution_limits)
    rmd_table: dict[int, float] = field(default_factory=lambda: dict(tax_data.UNIFORM_LIFETIME_DIVISORS))
    wage_index: dict[int, float] = field(default_factory=lambda: dict(tax_data.SSA_WAGE_INDEX))
    bend_points: dict[int, tuple[float, float]] = field(default_factory=lambda: dict(tax_data.SSA_BEND_POINTS))
    retirement_adjustments: list[RetirementAdjustment] = field(default_factory=default_retirement_adjustments)

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "policies") -> "PolicyTables":
        tables = cls()
        if "tax_policies" in data:
            tables.tax_policies = [TaxPolicy.from_dict(item, p) for item, p in _items(data, "tax_policies", f"{path}.")]
        if "ss_brackets" in data:
            tables.ss_brackets = [
                SsProvisionalBracket.from_dict(item, p) for item, p in _items(data, "ss_brackets", f"{path}.")
            ]
        if "irmaa_tables" in data:
            tables.irmaa_tables = [IrmaaTable.from_dict(item, p) for item, p in _items(data, "irmaa_tables", f"{path}.")]
        if "payroll_policies" in data:
            tables.payroll_policies = [
                PayrollPolicy.from_dict(item, p) for item, p in _items(data, "payroll_policies", f"{path}.")
            ]
        if "contribution_limits" in data:
            tables.contribution_limits = [
                ContributionLimit.from_dict(item, p) for item, p in _items(data, "contribution_limits", f"{path}.")
            ]
        if "rmd_table" in data:
            raw = _expect_dict(data["rmd_table"], f"{path}.rmd_table")
            tables.rmd_table = {int(age): float(divisor) for age, divisor in raw.items()}
        if "wage_index" in data:
            raw = _expect_dict(data["wage_index"], f"{path}.wage_index")
            tables.wage_index = {int(year): float(value) for year, value in raw.items()}
        if "bend_points" in data:
            raw = _expect_dict(data["bend_points"], f"{path}.bend_points")
            tables.bend_points = {}
            for year, pair in raw.items():
                values = _expect_list(pair, f"{path}.bend_points.{year}")
                if len(values) != 2:
                    raise SchemaError(f"{path}.bend_points.{year}: expected [first, second]")
                tables.bend_points[int(year)] = (float(values[0]), float(values[1]))
        if "retirement_adjustments" in data:
            tables.retirement_adjustments = [
                RetirementAdjustment.from_dict(item, p) for item, p in _items(data, "retirement_adjustments", f"{path}.")
            ]
        return tables


# ---------------------------------------------------------------------------
# Run settings and snapshot


@dataclass(slots=True)
class SimulationSettings:
    start_date: str | None = None
    months: int | None = None
    plan_mode: str = "apply"
    seed: int | None = None
    explain: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any], path: str = "settings") -> "SimulationSettings":
        months = _optional(data, "months")
        seed = _optional(data, "seed")
        return cls(
            start_date=_optional(data, "start_date"),
            months=None if months is None else int(months),
            plan_mode=_optional(data, "plan_mode", "apply"),
            seed=None if seed is None else int(seed),
            explain=bool(_optional(data, "explain", False)),
        )


@dataclass(slots=True)
class Snapshot:
    scenario: Scenario
    cash_accounts: list[CashAccount]
    holdings: list[Holding] = field(default_factory=list)
    spending_items: list[SpendingItem] = field(default_factory=list)
    work_periods: list[WorkPeriod] = field(default_factory=list)
    social_security: SocialSecurity | None = None
    pensions: list[Pension] = field(default_factory=list)
    events: list[CashflowEvent] = field(default_factory=list)
    policies: PolicyTables = field(default_factory=PolicyTables)
    settings: SimulationSettings = field(default_factory=SimulationSettings)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Snapshot":
        social_raw = _optional(data, "social_security")
        social_security = None
        if social_raw is not None:
            social_security = SocialSecurity.from_dict(_expect_dict(social_raw, "social_security"))
        return cls(
            scenario=Scenario.from_dict(_expect_dict(_require(data, "scenario", "snapshot"), "scenario")),
            cash_accounts=[CashAccount.from_dict(item, p) for item, p in _items(data, "cash_accounts", "")],
            holdings=[Holding.from_dict(item, p) for item, p in _items(data, "holdings", "")],
            spending_items=[SpendingItem.from_dict(item, p) for item, p in _items(data, "spending_items", "")],
            work_periods=[WorkPeriod.from_dict(item, p) for item, p in _items(data, "work_periods", "")],
            social_security=social_security,
            pensions=[Pension.from_dict(item, p) for item, p in _items(data, "pensions", "")],
            events=[CashflowEvent.from_dict(item, p) for item, p in _items(data, "events", "")],
            policies=PolicyTables.from_dict(_block(data, "policies", "snapshot"), "policies"),
            settings=SimulationSettings.from_dict(_block(data, "settings", "snapshot")),
        )


def load_snapshot(path: str | Path) -> Snapshot:
    """Load snapshot JSON into strongly-typed dataclasses."""
    source = Path(path)
    raw = json.loads(source.read_text(encoding="utf-8"))
    if not isinstance(raw, dict):
        raise SchemaError("snapshot: root must be a JSON object")
    return Snapshot.from_dict(raw)
