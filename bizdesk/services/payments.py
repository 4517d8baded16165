"""
Client and supplier payments.

Payments are created once and never edited. Recording one also moves the
counterparty's running balance:
- client payment   -> Client.current_balance -= amount
- supplier payment -> Supplier.current_balance -= amount

Both balance moves go through RecordStore.increment() in the same transaction as
the payment row, so a payment never exists without its balance effect.
"""

from __future__ import annotations

import logging
from typing import Any, Mapping

from sqlalchemy.exc import SQLAlchemyError

from ..audit import log_action, serialize_model
from ..errors import PaymentValidationError, PersistenceError
from ..models import ALLOCATION_TYPES, PAYMENT_METHODS, Client, Invoice, Payment, Supplier, SupplierPayment
from ..store import RecordStore
from ..utils import parse_date, parse_decimal, parse_optional_int

logger = logging.getLogger(__name__)


def _get(data: Any, name: str):
    if isinstance(data, Mapping):
        return data.get(name)
    return getattr(data, name, None)


def _clean_common(data: Any, problems: list):
    pay_date = parse_date(_get(data, "date"))
    if pay_date is None:
        problems.append("date is required (YYYY-MM-DD)")

    amount = parse_decimal(_get(data, "amount"))
    if amount is None or amount <= 0:
        problems.append("amount must be greater than zero")

    method = (str(_get(data, "method") or "EFT")).strip()
    if method not in PAYMENT_METHODS:
        problems.append(f"method must be one of {', '.join(PAYMENT_METHODS)}")

    return pay_date, amount, method


def record_payment(data: Any, *, store: RecordStore | None = None) -> Payment:
    """Record a client payment and reduce the client's balance."""
    store = store or RecordStore()
    problems = []

    pay_date, amount, method = _clean_common(data, problems)

    client_id = parse_optional_int(_get(data, "client_id"))
    if client_id is None:
        problems.append("client_id is required")

    allocation_type = (str(_get(data, "allocation_type") or "Whole")).strip()
    if allocation_type not in ALLOCATION_TYPES:
        problems.append(f"allocation_type must be one of {', '.join(ALLOCATION_TYPES)}")

    invoice_id = parse_optional_int(_get(data, "invoice_id"))
    if allocation_type == "Invoice" and invoice_id is None:
        problems.append("invoice_id is required when allocation_type is Invoice")

    if problems:
        raise PaymentValidationError("Invalid payment.", details={"problems": problems})

    client = store.get(Client, client_id)
    if client is None:
        raise PaymentValidationError(f"Client {client_id} does not exist.")

    if allocation_type == "Whole":
        invoice_id = None
    else:
        invoice = store.get(Invoice, invoice_id)
        if invoice is None or invoice.client_id != client_id:
            raise PaymentValidationError(f"Invoice {invoice_id} does not belong to client {client_id}.")

    try:
        payment = store.insert(
            Payment(
                date=pay_date,
                client_id=client_id,
                amount=amount,
                method=method,
                allocation_type=allocation_type,
                invoice_id=invoice_id,
            )
        )
        store.increment(Client, client_id, {"current_balance": -amount})
        log_action(payment, "CREATE", before=None, after=serialize_model(payment), session=store.session)
        store.commit()
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("Payment for client %s could not be recorded", client_id)
        raise PersistenceError("Failed to record payment.") from exc

    logger.info("Payment %s of %s recorded for client %s", payment.reference, amount, client_id)
    return payment


def record_supplier_payment(data: Any, *, store: RecordStore | None = None) -> SupplierPayment:
    """Record a payment to a supplier and reduce the amount owed."""
    store = store or RecordStore()
    problems = []

    pay_date, amount, method = _clean_common(data, problems)

    supplier_id = parse_optional_int(_get(data, "supplier_id"))
    if supplier_id is None:
        problems.append("supplier_id is required")

    if problems:
        raise PaymentValidationError("Invalid supplier payment.", details={"problems": problems})

    if store.get(Supplier, supplier_id) is None:
        raise PaymentValidationError(f"Supplier {supplier_id} does not exist.")

    try:
        payment = store.insert(
            SupplierPayment(
                date=pay_date,
                supplier_id=supplier_id,
                amount=amount,
                method=method,
                reference=(str(_get(data, "reference") or "")).strip() or None,
            )
        )
        store.increment(Supplier, supplier_id, {"current_balance": -amount})
        log_action(payment, "CREATE", before=None, after=serialize_model(payment), session=store.session)
        store.commit()
    except SQLAlchemyError as exc:
        store.rollback()
        logger.exception("Payment to supplier %s could not be recorded", supplier_id)
        raise PersistenceError("Failed to record supplier payment.") from exc

    logger.info("Supplier payment of %s recorded for supplier %s", amount, supplier_id)
    return payment
