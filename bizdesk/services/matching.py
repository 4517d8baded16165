"""
Resolve parsed supplier names and stock codes against known records.

Pure matching:
- match_supplier(): case-insensitive substring match; several hits without one exact
  name match are reported as ambiguous, never guessed.
- index_stock() / match_stock(): exact stock_code lookup.

Side effects:
- provision_stock_item(): creates the missing StockItem with derived pricing.
- resolve_parsed_lines(): match-or-provision for every parsed GRV line. Callers must
  treat it as a write.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable

from flask import current_app

from ..audit import log_action, serialize_model
from ..models import StockItem
from ..store import RecordStore
from ..utils import to_decimal
from .extraction import ParsedGrv

logger = logging.getLogger(__name__)

MATCHED = "matched"
AMBIGUOUS = "ambiguous"
NOT_FOUND = "not_found"

DEFAULT_CATEGORY = "Uncategorized"


@dataclass(frozen=True)
class SupplierMatch:
    status: str
    supplier: Any = None
    candidates: tuple = ()

    @property
    def matched(self) -> bool:
        return self.status == MATCHED

    def to_dict(self) -> dict:
        return {
            "status": self.status,
            "supplier_id": self.supplier.id if self.supplier is not None else None,
            "candidates": [
                {"id": c.id, "supplier_name": c.supplier_name} for c in self.candidates
            ],
        }


@dataclass(frozen=True)
class ResolvedGrvLine:
    stock_item_id: int
    stock_code: str
    description: str
    qty: int
    cost_price: Decimal
    selling_price: Decimal
    provisioned: bool

    def to_dict(self) -> dict:
        return {
            "stock_item_id": self.stock_item_id,
            "stock_code": self.stock_code,
            "description": self.description,
            "qty": self.qty,
            "cost_price": str(self.cost_price),
            "selling_price": str(self.selling_price),
            "provisioned": self.provisioned,
        }


# ---------------------------------------------------------------------
# Pure matching
# ---------------------------------------------------------------------
def match_supplier(parsed_name: str | None, suppliers: Iterable[Any]) -> SupplierMatch:
    needle = (parsed_name or "").strip().lower()
    if not needle:
        return SupplierMatch(NOT_FOUND)

    candidates = tuple(
        s for s in suppliers if needle in (s.supplier_name or "").lower()
    )
    if not candidates:
        return SupplierMatch(NOT_FOUND)
    if len(candidates) == 1:
        return SupplierMatch(MATCHED, candidates[0], candidates)

    exact = [c for c in candidates if (c.supplier_name or "").strip().lower() == needle]
    if len(exact) == 1:
        return SupplierMatch(MATCHED, exact[0], candidates)

    return SupplierMatch(AMBIGUOUS, None, candidates)


def index_stock(stock_items: Iterable[Any]) -> dict:
    return {item.stock_code: item for item in stock_items}


def match_stock(stock_code: str, index: dict):
    return index.get(stock_code)


# ---------------------------------------------------------------------
# Provisioning (writes)
# ---------------------------------------------------------------------
def provision_stock_item(
    store: RecordStore,
    *,
    stock_code: str,
    description: str,
    cost_price,
    supplier_name: str | None,
    markup=None,
    vat=None,
) -> StockItem:
    """
    Create a StockItem for an unknown stock code.

    Every price tier is cost_price * markup (1.5 by default), VAT defaults to 15 and
    quantity_on_hand starts at 0; the GRV that triggered this adds the received qty.
    """
    if markup is None:
        markup = current_app.config.get("STOCK_MARKUP", Decimal("1.5"))
    if vat is None:
        vat = current_app.config.get("DEFAULT_STOCK_VAT", Decimal("15"))

    cost = to_decimal(cost_price)
    price = cost * to_decimal(markup)

    item = StockItem(
        stock_code=stock_code,
        stock_descr=description or stock_code,
        category=DEFAULT_CATEGORY,
        cost_price=cost,
        last_cost=cost,
        selling_price=price,
        price_a=price,
        price_b=price,
        price_d=price,
        price_e=price,
        vat=to_decimal(vat),
        supplier=supplier_name,
        quantity_on_hand=0,
        quantity_in_warehouse=0,
        is_active=True,
    )
    store.insert(item)
    log_action(item, "CREATE", before=None, after=serialize_model(item), session=store.session)

    logger.info("Provisioned stock item %s (cost %s, price %s)", stock_code, cost, price)
    return item


def resolve_parsed_lines(
    parsed: ParsedGrv,
    store: RecordStore,
    stock_items: Iterable[Any] | None = None,
) -> list[ResolvedGrvLine]:
    """Match every parsed line to a stock item, provisioning unknown codes."""
    if stock_items is None:
        stock_items = store.filter_by(StockItem, is_active=True, order_by=(StockItem.stock_code,))
    index = index_stock(stock_items)

    resolved = []
    for parsed_item in parsed.items:
        stock = match_stock(parsed_item.stock_code, index)
        provisioned = False

        if stock is None:
            # Inactive records keep their code; reuse instead of violating uniqueness
            stock = store.first_by(StockItem, stock_code=parsed_item.stock_code)
            if stock is not None:
                logger.warning("Stock code %s matched an inactive stock item", parsed_item.stock_code)

        if stock is None:
            stock = provision_stock_item(
                store,
                stock_code=parsed_item.stock_code,
                description=parsed_item.description,
                cost_price=parsed_item.cost_price,
                supplier_name=parsed.supplier_name,
            )
            provisioned = True

        index[stock.stock_code] = stock

        resolved.append(
            ResolvedGrvLine(
                stock_item_id=stock.id,
                stock_code=stock.stock_code,
                description=parsed_item.description,
                qty=parsed_item.qty,
                cost_price=parsed_item.cost_price,
                selling_price=to_decimal(stock.selling_price),
                provisioned=provisioned,
            )
        )

    return resolved
