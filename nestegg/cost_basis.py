"""Cost basis lots: average-cost gain realisation and Roth basis seasoning."""

from __future__ import annotations

from datetime import date

from .dates import months_between, parse_iso
from .state import BasisLot, HoldingState
from .tax_data import ROTH_SEASONING_MONTHS


def total_basis(lots: list[BasisLot]) -> float:
    return sum(lot.amount for lot in lots)


def realize_sale(holding: HoldingState, amount: float) -> float:
    """Relieve basis proportionally for a sale of ``amount`` and return the realized gain.

    Must be called before the balance is reduced. Losses are returned as
    negative gains.
    """
    if amount <= 0 or holding.balance <= 0:
        return 0.0
    fraction = min(1.0, amount / holding.balance)
    basis = total_basis(holding.lots)
    relieved = basis * fraction
    for lot in holding.lots:
        lot.amount -= lot.amount * fraction
    holding.lots = [lot for lot in holding.lots if lot.amount > 1e-9]
    return amount - relieved


def add_lot(holding: HoldingState, amount: float, on: date | str) -> None:
    if amount <= 0:
        return
    lot_date = on if isinstance(on, str) else on.isoformat()
    holding.lots.append(BasisLot(date=lot_date, amount=amount))


def seasoned_basis(holding: HoldingState, on: date) -> float:
    """Sum of lots dated at least the seasoning period before ``on``."""
    total = 0.0
    for lot in holding.lots:
        lot_date = parse_iso(lot.date)
        if lot_date is None or lot_date > on:
            continue
        if months_between(lot_date, on) >= ROTH_SEASONING_MONTHS:
            total += lot.amount
    return total


def consume_basis(holding: HoldingState, amount: float, on: date) -> float:
    """Draw ``amount`` against seasoned lots, oldest first. Returns the basis consumed."""
    if amount <= 0:
        return 0.0
    remaining = amount
    consumed = 0.0
    for lot in sorted(holding.lots, key=lambda item: item.date):
        if remaining <= 0:
            break
        lot_date = parse_iso(lot.date)
        if lot_date is None or months_between(lot_date, on) < ROTH_SEASONING_MONTHS:
            continue
        take = min(lot.amount, remaining)
        lot.amount -= take
        remaining -= take
        consumed += take
    holding.lots = [lot for lot in holding.lots if lot.amount > 1e-9]
    return consumed


def relieve_unseasoned(holding: HoldingState, amount: float) -> None:
    """Reduce basis for an earnings draw so basis never exceeds the balance left behind."""
    remaining_balance = holding.balance - amount
    excess = total_basis(holding.lots) - max(0.0, remaining_balance)
    if excess <= 0:
        return
    for lot in sorted(holding.lots, key=lambda item: item.date, reverse=True):
        if excess <= 0:
            break
        take = min(lot.amount, excess)
        lot.amount -= take
        excess -= take
    holding.lots = [lot for lot in holding.lots if lot.amount > 1e-9]
