"""
VAT-aware line and document totals.

line_total()                 quantity * unit_price * (1 + vat_rate/100), full precision
calculate_document_totals()  subtotal / vat_amount / total_amount over a line list

Both are pure: the same lines always give the same totals, which is what lets a
document edit discard its lines and recompute everything from scratch.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Mapping

from ..utils import money, to_decimal

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class DocumentTotals:
    subtotal: Decimal
    vat_amount: Decimal
    total_amount: Decimal

    def rounded(self) -> "DocumentTotals":
        """Cents for the document header; total stays subtotal + vat after rounding."""
        subtotal = money(self.subtotal)
        vat_amount = money(self.vat_amount)
        return DocumentTotals(subtotal, vat_amount, subtotal + vat_amount)


def _line_value(line: Any, name: str):
    if isinstance(line, Mapping):
        return line.get(name)
    return getattr(line, name, None)


def line_subtotal(quantity, unit_price) -> Decimal:
    return to_decimal(quantity) * to_decimal(unit_price)


def line_vat(quantity, unit_price, vat_rate) -> Decimal:
    return line_subtotal(quantity, unit_price) * to_decimal(vat_rate) / HUNDRED


def line_total(quantity, unit_price, vat_rate) -> Decimal:
    """Line total including VAT. Round with display_money() for presentation only."""
    return line_subtotal(quantity, unit_price) * (1 + to_decimal(vat_rate) / HUNDRED)


def display_money(value) -> Decimal:
    return money(value)


def calculate_document_totals(lines: Iterable[Any]) -> DocumentTotals:
    """
    Sum per-line subtotal and VAT.

    Lines may be model instances or mappings with quantity/unit_price/vat_rate.
    An empty list yields zeros; rejecting empty documents is the caller's job.
    """
    subtotal = Decimal("0")
    vat_amount = Decimal("0")

    for line in lines:
        quantity = _line_value(line, "quantity")
        unit_price = _line_value(line, "unit_price")
        vat_rate = _line_value(line, "vat_rate")

        subtotal += line_subtotal(quantity, unit_price)
        vat_amount += line_vat(quantity, unit_price, vat_rate)

    return DocumentTotals(subtotal, vat_amount, subtotal + vat_amount)
