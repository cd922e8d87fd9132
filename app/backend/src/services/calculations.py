"""Calculation helpers for invoice amounts."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

CENT = Decimal("0.01")


def round2(value: Decimal | int | str) -> Decimal:
    """Round half-up to two decimal places."""

    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass(frozen=True, slots=True)
class InvoiceTotals:
    """Net, VAT and gross for an invoice, each rounded after its own step."""

    net: Decimal
    vat: Decimal
    gross: Decimal
    item_count: int = 0


def compute_totals(amounts: Iterable[Decimal], vat_rate: Decimal) -> InvoiceTotals:
    """Derive invoice totals from line item amounts.

    Rounding is applied after each derivation step: the net sum first, then
    the VAT on the rounded net, then the gross from the two rounded figures.
    """

    values = [Decimal(amount) for amount in amounts]
    net = round2(sum(values, Decimal("0")))
    vat = round2(net * Decimal(vat_rate))
    gross = round2(net + vat)
    return InvoiceTotals(net=net, vat=vat, gross=gross, item_count=len(values))


__all__ = ["CENT", "InvoiceTotals", "compute_totals", "round2"]
