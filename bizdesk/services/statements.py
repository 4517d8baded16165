"""
Client statements.

generate_statement() is a pure function of (invoices, payments, cutoff):
1) keep invoices and payments dated on or before the cutoff
2) invoices add their total_amount, payments subtract their amount
3) order by date; on the same date invoices come before payments, otherwise input order is kept
4) attach the running balance (starting at 0) to every entry

Nothing is persisted; client_statement() just fetches the client's history and calls it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Any, Iterable, Mapping

from flask import current_app

from ..models import Client, Invoice, Payment
from ..store import RecordStore
from ..utils import money, parse_date, to_decimal

logger = logging.getLogger(__name__)

ENTRY_INVOICE = "Invoice"
ENTRY_PAYMENT = "Payment"

# Same-date ordering
_TYPE_RANK = {ENTRY_INVOICE: 0, ENTRY_PAYMENT: 1}


@dataclass(frozen=True)
class StatementEntry:
    date: date
    type: str
    reference: str
    amount: Decimal
    balance: Decimal

    def to_dict(self) -> dict:
        return {
            "date": self.date.isoformat(),
            "type": self.type,
            "reference": self.reference,
            "amount": str(money(self.amount)),
            "balance": str(money(self.balance)),
        }


@dataclass(frozen=True)
class Statement:
    client_id: int
    cutoff: date
    entries: list = field(default_factory=list)

    @property
    def closing_balance(self) -> Decimal:
        return closing_balance(self.entries)

    def to_dict(self) -> dict:
        return {
            "client_id": self.client_id,
            "cutoff": self.cutoff.isoformat(),
            "entries": [entry.to_dict() for entry in self.entries],
            "closing_balance": str(money(self.closing_balance)),
        }


def _attr(record: Any, name: str, default=None):
    if isinstance(record, Mapping):
        return record.get(name, default)
    return getattr(record, name, default)


def _payment_reference(payment: Any) -> str:
    reference = _attr(payment, "reference")
    if reference:
        return str(reference)
    return f"PAY-{_attr(payment, 'id')}"


def generate_statement(
    invoices: Iterable[Any],
    payments: Iterable[Any],
    cutoff: date,
    *,
    excluded_statuses: Iterable[str] = (),
) -> list[StatementEntry]:
    """Merge invoice and payment histories into a running-balance statement."""
    excluded = set(excluded_statuses)
    transactions = []

    for invoice in invoices:
        tx_date = parse_date(_attr(invoice, "date"))
        if tx_date is None or tx_date > cutoff:
            continue
        if excluded and _attr(invoice, "status") in excluded:
            continue
        transactions.append(
            (tx_date, ENTRY_INVOICE, str(_attr(invoice, "invoice_no", "")), to_decimal(_attr(invoice, "total_amount")))
        )

    for payment in payments:
        tx_date = parse_date(_attr(payment, "date"))
        if tx_date is None or tx_date > cutoff:
            continue
        transactions.append(
            (tx_date, ENTRY_PAYMENT, _payment_reference(payment), -to_decimal(_attr(payment, "amount")))
        )

    # list.sort is stable: equal keys keep their input order
    transactions.sort(key=lambda tx: (tx[0], _TYPE_RANK[tx[1]]))

    balance = Decimal("0")
    entries = []
    for tx_date, tx_type, reference, amount in transactions:
        balance += amount
        entries.append(StatementEntry(tx_date, tx_type, reference, amount, balance))

    return entries


def closing_balance(entries: list[StatementEntry]) -> Decimal:
    return entries[-1].balance if entries else Decimal("0")


def client_statement(
    client_id: int,
    cutoff: date,
    *,
    store: RecordStore | None = None,
    excluded_statuses: Iterable[str] | None = None,
) -> Statement:
    """Point-in-time statement for one client (read-only)."""
    store = store or RecordStore()
    store.get_or_raise(Client, client_id)

    if excluded_statuses is None:
        excluded_statuses = current_app.config.get("STATEMENT_EXCLUDED_STATUSES", ())

    invoices = store.filter_by(Invoice, client_id=client_id, order_by=(Invoice.date, Invoice.id))
    payments = store.filter_by(Payment, client_id=client_id, order_by=(Payment.date, Payment.id))

    entries = generate_statement(invoices, payments, cutoff, excluded_statuses=excluded_statuses)
    logger.debug(
        "Statement for client %s up to %s: %d entries, closing %s",
        client_id, cutoff, len(entries), closing_balance(entries),
    )
    return Statement(client_id=client_id, cutoff=cutoff, entries=entries)
