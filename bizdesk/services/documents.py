"""
Invoice and quote lifecycle.

- Documents are created with their full line set in one transaction.
- Edits replace the whole line set (delete all, re-insert) and recompute the header
  totals with the same aggregator used on create.
- Non-VAT invoices carry vat_rate 0 on every line.
- A quote converts into a new Draft invoice with the same lines; the quote becomes Invoiced.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Any, Iterable, Mapping

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..audit import log_action, serialize_model
from ..errors import DocumentValidationError, InvalidTransitionError, PersistenceError
from ..models import (
    INVOICE_STATUSES,
    QUOTE_STATUSES,
    Client,
    Invoice,
    InvoiceItem,
    Quote,
    QuoteItem,
    StockItem,
)
from ..store import RecordStore
from ..utils import (
    money,
    next_document_number,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_optional_int,
    parse_positive_int,
)
from .totals import calculate_document_totals, line_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentKind:
    label: str
    model: Any
    item_model: Any
    number_field: str
    prefix: str
    statuses: tuple


INVOICE = DocumentKind("Invoice", Invoice, InvoiceItem, "invoice_no", "INV-", INVOICE_STATUSES)
QUOTE = DocumentKind("Quote", Quote, QuoteItem, "quote_no", "QUO-", QUOTE_STATUSES)

# Quotes in these states cannot be converted again
_CLOSED_QUOTE_STATUSES = ("Invoiced", "Cancelled")


# ---------------------------------------------------------------------
# Numbering
# ---------------------------------------------------------------------
def next_number(kind: DocumentKind, store: RecordStore | None = None) -> str:
    """Next INV-/QUO- number after the highest numeric one in use."""
    store = store or RecordStore()
    column = getattr(kind.model, kind.number_field)

    highest = None
    highest_value = -1
    for number in store.session.scalars(select(column).where(column.like(f"{kind.prefix}%"))):
        suffix = number[len(kind.prefix):]
        if suffix.isdigit() and int(suffix) > highest_value:
            highest, highest_value = number, int(suffix)

    return next_document_number(highest, kind.prefix)


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------
def _get(data: Any, name: str, default=None):
    if isinstance(data, Mapping):
        return data.get(name, default)
    return getattr(data, name, default)


def clean_lines(raw_lines: Iterable[Any] | None, *, is_vat_invoice: bool = True, store: RecordStore | None = None) -> list[dict]:
    """
    Validate document lines and derive line_total.

    Rules: at least one line; quantity positive whole number; unit_price >= 0;
    vat_rate within 0..100 (forced to 0 for non-VAT invoices).

    unit_price and vat_rate are rounded to their stored two decimals first, so
    line_total and the header totals agree with what a reload returns.
    """
    raw_lines = list(raw_lines or [])
    if not raw_lines:
        raise DocumentValidationError("Please add at least one item to the document.")

    problems = []
    lines = []
    for idx, raw in enumerate(raw_lines, start=1):
        quantity = parse_positive_int(_get(raw, "quantity"))
        unit_price = parse_decimal(_get(raw, "unit_price"))
        raw_vat = _get(raw, "vat_rate")
        vat_rate = parse_decimal(raw_vat) if raw_vat not in (None, "") else parse_decimal(0)
        stock_item_id = parse_optional_int(_get(raw, "stock_item_id"))

        if quantity is None:
            problems.append(f"item {idx}: quantity must be a positive whole number")
        if unit_price is None or unit_price < 0:
            problems.append(f"item {idx}: unit_price must be a non-negative number")
        if vat_rate is None or vat_rate < 0 or vat_rate > 100:
            problems.append(f"item {idx}: vat_rate must be between 0 and 100")
        if stock_item_id is not None and store is not None and store.get(StockItem, stock_item_id) is None:
            problems.append(f"item {idx}: stock item {stock_item_id} does not exist")

        if problems:
            continue

        unit_price = money(unit_price)
        vat_rate = money(vat_rate) if is_vat_invoice else money(0)

        lines.append(
            {
                "stock_item_id": stock_item_id,
                "description": (str(_get(raw, "description") or "")).strip(),
                "quantity": quantity,
                "unit_price": unit_price,
                "vat_rate": vat_rate,
                "line_total": line_total(quantity, unit_price, vat_rate),
            }
        )

    if problems:
        raise DocumentValidationError("Invalid document items.", details={"problems": problems})
    return lines


def _existing_lines(document) -> list[dict]:
    return [
        {
            "stock_item_id": item.stock_item_id,
            "description": item.description,
            "quantity": item.quantity,
            "unit_price": item.unit_price,
            "vat_rate": item.vat_rate,
        }
        for item in document.items
    ]


def _clean_status(kind: DocumentKind, status) -> str:
    status = (str(status or "")).strip() or "Draft"
    if status not in kind.statuses:
        raise DocumentValidationError(
            f"Invalid {kind.label.lower()} status {status!r}.",
            details={"allowed": list(kind.statuses)},
        )
    return status


def _clean_client_id(raw, store: RecordStore) -> int:
    client_id = parse_optional_int(raw)
    if client_id is None:
        raise DocumentValidationError("client_id is required.")
    if store.get(Client, client_id) is None:
        raise DocumentValidationError(f"Client {client_id} does not exist.")
    return client_id


def _clean_vat_flag(raw) -> bool:
    is_vat = parse_bool(raw)
    if is_vat is None:
        raise DocumentValidationError("is_vat_invoice must be true or false.")
    return is_vat


def _clean_date(raw) -> date:
    doc_date = parse_date(raw)
    if doc_date is None:
        raise DocumentValidationError("date is required (YYYY-MM-DD).")
    return doc_date


# ---------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------
def _apply_lines(kind: DocumentKind, document, lines: list[dict], store: RecordStore) -> None:
    """Replace the line set and recompute header totals."""
    if document.items:
        document.items = []
        store.session.flush()

    document.items = [kind.item_model(**line) for line in lines]

    totals = calculate_document_totals(lines).rounded()
    document.subtotal = totals.subtotal
    document.vat_amount = totals.vat_amount
    document.total_amount = totals.total_amount


def _commit(kind: DocumentKind, number: str, store: RecordStore) -> None:
    try:
        store.commit()
    except IntegrityError as exc:
        store.rollback()
        raise DocumentValidationError(f"{kind.label} number {number} already exists.") from exc
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("%s %s could not be saved", kind.label, number)
        raise PersistenceError(f"Failed to save {kind.label.lower()} {number}.") from exc


def _create(kind: DocumentKind, data: Any, store: RecordStore, **extra):
    client_id = _clean_client_id(_get(data, "client_id"), store)
    doc_date = _clean_date(_get(data, "date"))
    status = _clean_status(kind, _get(data, "status"))
    number = (str(_get(data, kind.number_field) or "")).strip() or next_number(kind, store)

    lines = clean_lines(_get(data, "items"), is_vat_invoice=extra.get("is_vat_invoice", True), store=store)

    document = kind.model(
        date=doc_date,
        client_id=client_id,
        work_scope=(str(_get(data, "work_scope") or "")).strip() or None,
        status=status,
        **{kind.number_field: number},
        **extra,
    )
    _apply_lines(kind, document, lines, store)

    try:
        store.insert(document)
    except IntegrityError as exc:
        store.rollback()
        raise DocumentValidationError(f"{kind.label} number {number} already exists.") from exc

    log_action(document, "CREATE", before=None, after=serialize_model(document), session=store.session)
    _commit(kind, number, store)

    logger.info("%s %s created (total %s)", kind.label, number, document.total_amount)
    return document


def _update(kind: DocumentKind, document_id: int, data: Any, store: RecordStore):
    document = store.get_or_raise(kind.model, document_id)
    before = serialize_model(document)

    if _get(data, kind.number_field) is not None:
        number = (str(_get(data, kind.number_field))).strip()
        if not number:
            raise DocumentValidationError(f"{kind.number_field} cannot be empty.")
        setattr(document, kind.number_field, number)
    if _get(data, "date") is not None:
        document.date = _clean_date(_get(data, "date"))
    if _get(data, "client_id") is not None:
        document.client_id = _clean_client_id(_get(data, "client_id"), store)
    if _get(data, "work_scope") is not None:
        document.work_scope = (str(_get(data, "work_scope"))).strip() or None
    if _get(data, "status") is not None:
        document.status = _clean_status(kind, _get(data, "status"))

    vat_changed = False
    if kind is INVOICE and _get(data, "is_vat_invoice") is not None:
        is_vat = _clean_vat_flag(_get(data, "is_vat_invoice"))
        vat_changed = is_vat != document.is_vat_invoice
        document.is_vat_invoice = is_vat

    raw_lines = _get(data, "items")
    if raw_lines is not None or vat_changed:
        if raw_lines is None:
            raw_lines = _existing_lines(document)
        is_vat = document.is_vat_invoice if kind is INVOICE else True
        lines = clean_lines(raw_lines, is_vat_invoice=is_vat, store=store)
        _apply_lines(kind, document, lines, store)

    number = getattr(document, kind.number_field)
    try:
        store.session.flush()
    except IntegrityError as exc:
        store.rollback()
        raise DocumentValidationError(f"{kind.label} number {number} already exists.") from exc

    log_action(document, "UPDATE", before=before, after=serialize_model(document), session=store.session)
    _commit(kind, number, store)
    return document


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------
def create_invoice(data: Any, *, store: RecordStore | None = None) -> Invoice:
    store = store or RecordStore()
    is_vat = _get(data, "is_vat_invoice")
    return _create(INVOICE, data, store, is_vat_invoice=True if is_vat is None else _clean_vat_flag(is_vat))


def update_invoice(invoice_id: int, data: Any, *, store: RecordStore | None = None) -> Invoice:
    return _update(INVOICE, invoice_id, data, store or RecordStore())


def set_invoice_status(invoice_id: int, status: str, *, store: RecordStore | None = None) -> Invoice:
    store = store or RecordStore()
    invoice = store.get_or_raise(Invoice, invoice_id)
    status = _clean_status(INVOICE, status)

    if invoice.status == "Cancelled" and status != "Cancelled":
        raise InvalidTransitionError(f"Invoice {invoice.invoice_no} is cancelled.")

    before = serialize_model(invoice)
    store.update(invoice, status=status)
    log_action(invoice, "UPDATE", before=before, after=serialize_model(invoice), session=store.session)
    _commit(INVOICE, invoice.invoice_no, store)
    return invoice


def create_quote(data: Any, *, store: RecordStore | None = None) -> Quote:
    return _create(QUOTE, data, store or RecordStore())


def update_quote(quote_id: int, data: Any, *, store: RecordStore | None = None) -> Quote:
    return _update(QUOTE, quote_id, data, store or RecordStore())


def convert_quote_to_invoice(
    quote_id: int,
    *,
    invoice_date: date | None = None,
    is_vat_invoice: Any = True,
    store: RecordStore | None = None,
) -> Invoice:
    """Create a Draft invoice from the quote's lines and mark the quote Invoiced."""
    store = store or RecordStore()
    is_vat_invoice = _clean_vat_flag(is_vat_invoice)
    quote = store.get_or_raise(Quote, quote_id)

    if quote.status in _CLOSED_QUOTE_STATUSES:
        raise InvalidTransitionError(f"Quote {quote.quote_no} is {quote.status} and cannot be invoiced.")

    before = serialize_model(quote)
    number = next_number(INVOICE, store)
    lines = clean_lines(_existing_lines(quote), is_vat_invoice=is_vat_invoice, store=store)

    invoice = Invoice(
        invoice_no=number,
        date=invoice_date or date.today(),
        client_id=quote.client_id,
        work_scope=quote.work_scope,
        status="Draft",
        is_vat_invoice=is_vat_invoice,
    )
    _apply_lines(INVOICE, invoice, lines, store)
    store.insert(invoice)

    quote.status = "Invoiced"
    quote.invoice_id = invoice.id
    store.session.flush()

    log_action(invoice, "CREATE", before=None, after=serialize_model(invoice), session=store.session)
    log_action(quote, "CONVERT", before=before, after=serialize_model(quote), session=store.session)
    _commit(INVOICE, number, store)

    logger.info("Quote %s converted to invoice %s", quote.quote_no, number)
    return invoice
