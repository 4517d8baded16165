"""
Goods Received Voucher intake.

record_grv() runs a linear, non-resumable sequence:

    Validate -> InsertHeader -> InsertItems -> UpdateStockPerItem* -> UpdateSupplierBalance -> Done

- Validate: nothing is written when the voucher is rejected.
- InsertHeader/InsertItems: one transaction. A failure rolls back and raises PersistenceError.
- UpdateStockPerItem: quantity_on_hand += qty and cost/last cost/selling price overwritten,
  committed per item. A failing item is rolled back, logged and skipped.
- UpdateSupplierBalance: current_balance += sum(qty * cost_price). Failure is logged.

The GRV stays recorded even when stock or supplier updates fail. Those failures are
returned on GrvIntakeResult (degraded=True) so the caller can see and report them.

intake_parsed_grv() and draft_from_pdf() put supplier matching and stock provisioning
in front of record_grv() for vouchers that come from the PDF extractor.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from sqlalchemy.exc import SQLAlchemyError

from ..audit import log_action, serialize_model
from ..errors import (
    ExtractionError,
    GrvValidationError,
    PersistenceError,
    RecordNotFoundError,
    SupplierResolutionError,
)
from ..models import Grv, GrvItem, StockItem, Supplier
from ..store import RecordStore
from ..utils import money, parse_date, parse_decimal, parse_optional_int, parse_positive_int, to_decimal
from .extraction import Extractor, ParsedGrv, extract_grv, validate_parsed_grv
from .matching import AMBIGUOUS, SupplierMatch, match_supplier, resolve_parsed_lines

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GrvHeader:
    reference: str
    date: date
    supplier_id: int | None = None
    order_no: str | None = None
    note: str | None = None


@dataclass(frozen=True)
class GrvLine:
    qty: int
    cost_price: Decimal
    selling_price: Decimal | None = None
    stock_item_id: int | None = None

    @property
    def value(self) -> Decimal:
        return Decimal(self.qty) * self.cost_price


@dataclass(frozen=True)
class StockUpdateFailure:
    stock_item_id: int
    error: str


@dataclass
class GrvIntakeResult:
    grv: Grv
    total_value: Decimal
    updated_stock_ids: list = field(default_factory=list)
    stock_failures: list = field(default_factory=list)
    supplier_updated: bool = False
    supplier_error: str | None = None

    @property
    def degraded(self) -> bool:
        return bool(self.stock_failures or self.supplier_error)

    def to_dict(self) -> dict:
        return {
            "grv_id": self.grv.id,
            "reference": self.grv.reference,
            "total_value": str(money(self.total_value)),
            "updated_stock_ids": list(self.updated_stock_ids),
            "stock_failures": [
                {"stock_item_id": f.stock_item_id, "error": f.error} for f in self.stock_failures
            ],
            "supplier_updated": self.supplier_updated,
            "supplier_error": self.supplier_error,
            "degraded": self.degraded,
        }


@dataclass(frozen=True)
class GrvDraft:
    """Extracted voucher, resolved against known records but not yet recorded."""

    parsed: ParsedGrv
    supplier_match: SupplierMatch
    lines: list

    def to_dict(self) -> dict:
        return {
            "supplier_name": self.parsed.supplier_name,
            "reference": self.parsed.reference,
            "date": self.parsed.date.isoformat(),
            "order_no": self.parsed.order_no,
            "supplier": self.supplier_match.to_dict(),
            "items": [line.to_dict() for line in self.lines],
        }


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------
def _field(data: Any, name: str):
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _clean_header(raw: Any) -> GrvHeader:
    reference = (str(_field(raw, "reference") or "")).strip()
    grv_date = parse_date(_field(raw, "date"))

    problems = []
    if not reference:
        problems.append("reference is required")
    if grv_date is None:
        problems.append("date is required (YYYY-MM-DD)")

    raw_supplier_id = _field(raw, "supplier_id")
    supplier_id = parse_optional_int(raw_supplier_id)
    if raw_supplier_id not in (None, "") and supplier_id is None:
        problems.append("supplier_id must be an integer")

    if problems:
        raise GrvValidationError("Invalid GRV header.", details={"problems": problems})

    return GrvHeader(
        reference=reference,
        date=grv_date,
        supplier_id=supplier_id,
        order_no=(str(_field(raw, "order_no") or "")).strip() or None,
        note=(str(_field(raw, "note") or "")).strip() or None,
    )


def _clean_lines(raw_items: Iterable[Any] | None) -> list[GrvLine]:
    raw_items = list(raw_items or [])
    if not raw_items:
        raise GrvValidationError("GRV must contain at least one item.")

    problems = []
    lines = []
    for idx, raw in enumerate(raw_items, start=1):
        qty = parse_positive_int(_field(raw, "qty"))
        cost_price = parse_decimal(_field(raw, "cost_price"))
        raw_selling = _field(raw, "selling_price")
        selling_price = parse_decimal(raw_selling)
        stock_item_id = parse_optional_int(_field(raw, "stock_item_id"))

        if qty is None:
            problems.append(f"item {idx}: qty must be a positive whole number")
        if cost_price is None or cost_price < 0:
            problems.append(f"item {idx}: cost_price must be a non-negative number")
        if raw_selling not in (None, "") and (selling_price is None or selling_price < 0):
            problems.append(f"item {idx}: selling_price must be a non-negative number")

        if not problems:
            lines.append(GrvLine(qty, cost_price, selling_price, stock_item_id))

    if problems:
        raise GrvValidationError("Invalid GRV items.", details={"problems": problems})
    return lines


# ---------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------
def _selling_price_for(line: GrvLine, store: RecordStore) -> Decimal:
    """Lines without a selling price keep the stock item's current one."""
    if line.selling_price is not None:
        return line.selling_price
    stock = store.get(StockItem, line.stock_item_id)
    if stock is None:
        return Decimal("0")
    return to_decimal(stock.selling_price)


def record_grv(header: Any, items: Iterable[Any], *, store: RecordStore | None = None) -> GrvIntakeResult:
    """Record a GRV, then apply its stock and supplier side effects best-effort."""
    store = store or RecordStore()

    # Validate
    header = _clean_header(header)
    lines = _clean_lines(items)

    if header.supplier_id is not None and store.get(Supplier, header.supplier_id) is None:
        raise GrvValidationError(f"Supplier {header.supplier_id} does not exist.")

    lines = [
        GrvLine(line.qty, line.cost_price, _selling_price_for(line, store), line.stock_item_id)
        for line in lines
    ]
    total_value = sum((line.value for line in lines), Decimal("0"))

    # InsertHeader / InsertItems
    try:
        grv = store.insert(
            Grv(
                reference=header.reference,
                date=header.date,
                supplier_id=header.supplier_id,
                order_no=header.order_no,
                note=header.note,
            )
        )
        store.insert_many(
            GrvItem(
                grv_id=grv.id,
                stock_item_id=line.stock_item_id,
                qty=line.qty,
                cost_price=line.cost_price,
                selling_price=line.selling_price,
            )
            for line in lines
        )
        log_action(grv, "RECEIVE", before=None, after=serialize_model(grv), session=store.session)
        store.commit()
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("GRV %s could not be recorded", header.reference)
        raise PersistenceError(f"Failed to record GRV {header.reference}.") from exc

    grv_id = grv.id
    logger.info("GRV %s recorded as #%s (%d items, value %s)", header.reference, grv_id, len(lines), total_value)

    result = GrvIntakeResult(grv=grv, total_value=total_value)

    # UpdateStockPerItem
    for line in lines:
        if line.stock_item_id is None:
            continue
        try:
            store.increment(
                StockItem,
                line.stock_item_id,
                {"quantity_on_hand": line.qty},
                cost_price=line.cost_price,
                last_cost=line.cost_price,
                selling_price=line.selling_price,
            )
            store.commit()
        except (SQLAlchemyError, RecordNotFoundError) as exc:
            store.rollback()
            logger.error("GRV #%s: stock item %s not updated: %s", grv_id, line.stock_item_id, exc)
            result.stock_failures.append(StockUpdateFailure(line.stock_item_id, str(exc)))
        else:
            result.updated_stock_ids.append(line.stock_item_id)

    # UpdateSupplierBalance
    if header.supplier_id is not None:
        try:
            store.increment(Supplier, header.supplier_id, {"current_balance": total_value})
            store.commit()
        except (SQLAlchemyError, RecordNotFoundError) as exc:
            store.rollback()
            logger.error("GRV #%s: supplier %s balance not updated: %s", grv_id, header.supplier_id, exc)
            result.supplier_error = str(exc)
        else:
            result.supplier_updated = True

    if result.degraded:
        logger.warning("GRV #%s recorded with incomplete stock/supplier updates", grv_id)
    return result


# ---------------------------------------------------------------------
# Parsed (PDF) vouchers
# ---------------------------------------------------------------------
def resolve_grv_supplier(supplier_name: str, store: RecordStore, supplier_id: int | None = None) -> Supplier:
    """Explicit supplier_id wins; otherwise the parsed name must match exactly one supplier."""
    if supplier_id is not None:
        return store.get_or_raise(Supplier, supplier_id)

    match = match_supplier(supplier_name, store.filter_by(Supplier, order_by=(Supplier.supplier_name,)))
    if match.matched:
        return match.supplier

    candidates = [{"id": c.id, "supplier_name": c.supplier_name} for c in match.candidates]
    if match.status == AMBIGUOUS:
        raise SupplierResolutionError(
            f'Supplier "{supplier_name}" matches several suppliers. Please select manually.',
            supplier_name=supplier_name,
            candidates=candidates,
        )
    raise SupplierResolutionError(
        f'Supplier "{supplier_name}" not found. Please select manually.',
        supplier_name=supplier_name,
    )


def _clean_submitted_payload(payload: Any) -> ParsedGrv:
    """A voucher payload sent by the caller: shape problems are the caller's, not the extractor's."""
    if isinstance(payload, Mapping) and payload.get("error"):
        raise GrvValidationError(f"Payload carries an extraction error: {payload['error']}")
    try:
        return validate_parsed_grv(payload)
    except ExtractionError as exc:
        raise GrvValidationError("Invalid GRV payload.", details=exc.details) from exc


def intake_parsed_grv(
    payload: Any,
    *,
    supplier_id: int | None = None,
    note: str | None = None,
    store: RecordStore | None = None,
) -> GrvIntakeResult:
    """Validate an extractor payload, resolve supplier and stock, then record the GRV."""
    store = store or RecordStore()

    parsed = payload if isinstance(payload, ParsedGrv) else _clean_submitted_payload(payload)
    supplier = resolve_grv_supplier(parsed.supplier_name, store, supplier_id)

    # Provisioned stock items are flushed here and committed with the GRV header
    resolved = resolve_parsed_lines(parsed, store)

    header = GrvHeader(
        reference=parsed.reference,
        date=parsed.date,
        supplier_id=supplier.id,
        order_no=parsed.order_no,
        note=note,
    )
    items = [
        GrvLine(line.qty, line.cost_price, line.selling_price, line.stock_item_id)
        for line in resolved
    ]
    return record_grv(header, items, store=store)


def draft_from_pdf(
    data: bytes,
    filename: str,
    *,
    extractor: Extractor | None = None,
    store: RecordStore | None = None,
) -> GrvDraft:
    """
    Extract a voucher from a PDF for review.

    Unknown stock codes are provisioned (and committed) so the draft lines can point at
    real stock items; the GRV itself is not recorded.
    """
    store = store or RecordStore()

    parsed = extract_grv(data, filename, extractor).unwrap()
    supplier_match = match_supplier(
        parsed.supplier_name, store.filter_by(Supplier, order_by=(Supplier.supplier_name,))
    )

    try:
        lines = resolve_parsed_lines(parsed, store)
        store.commit()
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("Stock provisioning failed for %s", filename)
        raise PersistenceError("Failed to create stock items for the extracted GRV.") from exc

    return GrvDraft(parsed=parsed, supplier_match=supplier_match, lines=lines)
