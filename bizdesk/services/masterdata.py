"""
Master data: clients, suppliers and stock items.

- Records are created and edited here; documents, payments and GRVs only reference them.
- Opening balances and the opening quantity_on_hand are accepted on create only.
  After that a balance moves through payments and GRVs, and stock through GRVs and
  adjust_stock_quantity(). All of those use RecordStore.increment().
- Every create, edit and adjustment is audited with before/after snapshots.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Mapping

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from ..audit import log_action, serialize_model
from ..errors import MasterDataValidationError, PersistenceError
from ..models import Client, StockItem, Supplier
from ..store import RecordStore
from ..utils import parse_bool, parse_decimal, parse_optional_int
from .matching import DEFAULT_CATEGORY

logger = logging.getLogger(__name__)

# Field kinds
TEXT = "text"
AMOUNT = "amount"  # decimal >= 0
SIGNED = "signed"  # any decimal (balances)
COUNT = "count"  # whole number >= 0
PERCENT = "percent"  # decimal 0..100
FLAG = "flag"


@dataclass(frozen=True)
class MasterDataKind:
    label: str
    model: Any
    code_field: str
    name_field: str
    fields: dict
    opening_fields: tuple = ()
    defaults: tuple = ()


CLIENT = MasterDataKind(
    "Client",
    Client,
    "customer_code",
    "customer_name",
    {
        "customer_code": TEXT,
        "customer_name": TEXT,
        "owner": TEXT,
        "address": TEXT,
        "phone_number": TEXT,
        "email": TEXT,
        "vat_no": TEXT,
        "reg_no": TEXT,
        "price_category": TEXT,
        "credit_limit": AMOUNT,
        "current_balance": SIGNED,
    },
    opening_fields=("current_balance",),
)

SUPPLIER = MasterDataKind(
    "Supplier",
    Supplier,
    "supplier_code",
    "supplier_name",
    {
        "supplier_code": TEXT,
        "supplier_name": TEXT,
        "contact_person": TEXT,
        "address": TEXT,
        "cell_number": TEXT,
        "ageing_balance": SIGNED,
        "contra": TEXT,
        "current_balance": SIGNED,
    },
    opening_fields=("current_balance",),
)

STOCK = MasterDataKind(
    "Stock item",
    StockItem,
    "stock_code",
    "stock_descr",
    {
        "stock_code": TEXT,
        "stock_descr": TEXT,
        "category": TEXT,
        "size": TEXT,
        "cost_price": AMOUNT,
        "last_cost": AMOUNT,
        "selling_price": AMOUNT,
        "price_a": AMOUNT,
        "price_b": AMOUNT,
        "price_d": AMOUNT,
        "price_e": AMOUNT,
        "quantity_on_hand": COUNT,
        "quantity_in_warehouse": COUNT,
        "supplier": TEXT,
        "vat": PERCENT,
        "min_level": COUNT,
        "max_level": COUNT,
        "is_active": FLAG,
    },
    opening_fields=("quantity_on_hand",),
    defaults=(("category", DEFAULT_CATEGORY),),
)


# ---------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------
def _clean_value(kind_name: str, name: str, raw, problems: list):
    if kind_name == TEXT:
        return (str(raw or "")).strip() or None

    if kind_name == FLAG:
        value = parse_bool(raw)
        if value is None:
            problems.append(f"{name} must be true or false")
        return value

    if kind_name == COUNT:
        value = None if isinstance(raw, float) else parse_optional_int(raw)
        if value is None or value < 0:
            problems.append(f"{name} must be a whole number >= 0")
        return value

    value = parse_decimal(raw)
    if value is None:
        problems.append(f"{name} must be a number")
    elif kind_name == AMOUNT and value < 0:
        problems.append(f"{name} cannot be negative")
    elif kind_name == PERCENT and not (0 <= value <= 100):
        problems.append(f"{name} must be between 0 and 100")
    return value


def clean_master_data(kind: MasterDataKind, data: Any, *, creating: bool) -> dict:
    """
    Validate a create or edit payload for one kind of master record.

    Only known fields are read; the code and name may not be blank. On edit, the
    opening fields are refused because those values only move through postings.
    """
    if not isinstance(data, Mapping):
        raise MasterDataValidationError(f"{kind.label} data must be an object.")

    problems = []
    values = {}

    if not creating:
        for name in kind.opening_fields:
            if name in data:
                problems.append(f"{name} cannot be edited; it changes only through postings")

    for name, kind_name in kind.fields.items():
        if name not in data or (not creating and name in kind.opening_fields):
            continue
        values[name] = _clean_value(kind_name, name, data[name], problems)

    for name in (kind.code_field, kind.name_field):
        if (creating or name in data) and not values.get(name):
            problems.append(f"{name} is required")

    for name, default in kind.defaults:
        if name in values and values[name] is None:
            values[name] = default

    if problems:
        raise MasterDataValidationError(f"Invalid {kind.label.lower()}.", details={"problems": problems})
    return values


# ---------------------------------------------------------------------
# Persistence helpers
# ---------------------------------------------------------------------
def _duplicate_code(kind: MasterDataKind, record, store: RecordStore) -> MasterDataValidationError:
    code = getattr(record, kind.code_field)
    store.rollback()
    return MasterDataValidationError(f"{kind.label} code {code} already exists.")


def _commit(kind: MasterDataKind, record, store: RecordStore) -> None:
    try:
        store.commit()
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("%s %s could not be saved", kind.label, getattr(record, kind.code_field))
        raise PersistenceError(f"Failed to save {kind.label.lower()}.") from exc


def create_record(kind: MasterDataKind, data: Any, *, store: RecordStore | None = None):
    store = store or RecordStore()
    values = clean_master_data(kind, data, creating=True)

    record = kind.model(**values)
    try:
        store.insert(record)
    except IntegrityError as exc:
        raise _duplicate_code(kind, record, store) from exc

    log_action(record, "CREATE", before=None, after=serialize_model(record), session=store.session)
    _commit(kind, record, store)

    logger.info("%s %s created", kind.label, getattr(record, kind.code_field))
    return record


def update_record(kind: MasterDataKind, record_id: int, data: Any, *, store: RecordStore | None = None):
    store = store or RecordStore()
    record = store.get_or_raise(kind.model, record_id)
    values = clean_master_data(kind, data, creating=False)

    before = serialize_model(record)
    try:
        store.update(record, **values)
    except IntegrityError as exc:
        raise _duplicate_code(kind, record, store) from exc

    log_action(record, "UPDATE", before=before, after=serialize_model(record), session=store.session)
    _commit(kind, record, store)
    return record


def list_records(kind: MasterDataKind, *, store: RecordStore | None = None, **criteria) -> list:
    store = store or RecordStore()
    return store.filter_by(kind.model, order_by=(getattr(kind.model, kind.code_field),), **criteria)


# ---------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------
def create_client(data: Any, *, store: RecordStore | None = None) -> Client:
    return create_record(CLIENT, data, store=store)


def update_client(client_id: int, data: Any, *, store: RecordStore | None = None) -> Client:
    return update_record(CLIENT, client_id, data, store=store)


def create_supplier(data: Any, *, store: RecordStore | None = None) -> Supplier:
    return create_record(SUPPLIER, data, store=store)


def update_supplier(supplier_id: int, data: Any, *, store: RecordStore | None = None) -> Supplier:
    return update_record(SUPPLIER, supplier_id, data, store=store)


def create_stock_item(data: Any, *, store: RecordStore | None = None) -> StockItem:
    return create_record(STOCK, data, store=store)


def update_stock_item(stock_item_id: int, data: Any, *, store: RecordStore | None = None) -> StockItem:
    return update_record(STOCK, stock_item_id, data, store=store)


def adjust_stock_quantity(stock_item_id: int, delta, *, store: RecordStore | None = None) -> StockItem:
    """
    Add delta (may be negative) to quantity_on_hand in one UPDATE.

    The adjustment is refused when it would leave the item below zero.
    """
    store = store or RecordStore()
    amount = None if isinstance(delta, float) else parse_optional_int(delta)
    if not amount:
        raise MasterDataValidationError("delta must be a non-zero whole number.")

    item = store.get_or_raise(StockItem, stock_item_id)
    before = serialize_model(item)

    try:
        store.increment(StockItem, stock_item_id, {"quantity_on_hand": amount})
        store.session.refresh(item)
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("Stock item %s could not be adjusted", item.stock_code)
        raise PersistenceError(f"Failed to adjust stock item {item.stock_code}.") from exc

    if item.quantity_on_hand < 0:
        store.rollback()
        raise MasterDataValidationError(
            f"Adjustment would leave {item.stock_code} below zero.",
            details={"delta": amount},
        )

    log_action(item, "ADJUST", before=before, after=serialize_model(item), session=store.session)
    _commit(STOCK, item, store)

    logger.info("Stock item %s adjusted by %s", item.stock_code, amount)
    return item
