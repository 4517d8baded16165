"""
bizdesk/seed.py

Seed demo master data: clients, suppliers and stock items.

Rules:
- Safe to run multiple times (idempotent). Records are matched by their business code.
- Balances and quantities are only set on first creation; re-running never resets
  figures that GRVs or payments have since moved.
"""

from __future__ import annotations

from decimal import Decimal

from .extensions import db
from .models import Client, StockItem, Supplier


DEMO_CLIENTS = [
    # customer_code, customer_name, email, credit_limit
    ("C001", "Acme Construction", "accounts@acme.example", Decimal("50000.00")),
    ("C002", "Riverbend Plumbing", "office@riverbend.example", Decimal("15000.00")),
]


DEMO_SUPPLIERS = [
    # supplier_code, supplier_name, contact_person
    ("S001", "Acme Hardware Supplies", "J. Mokoena"),
    ("S002", "Coastal Timber", "L. Pillay"),
]


DEMO_STOCK = [
    # stock_code, description, cost_price, selling_price, supplier
    ("BOLT-M8", "M8 hex bolt (box of 100)", Decimal("42.0000"), Decimal("63.0000"), "Acme Hardware Supplies"),
    ("PIPE-22", "22mm copper pipe 3m", Decimal("180.0000"), Decimal("270.0000"), "Acme Hardware Supplies"),
    ("PINE-38", "38x38 pine batten 3.6m", Decimal("35.5000"), Decimal("53.2500"), "Coastal Timber"),
]


def seed_demo_data() -> None:
    """Create demo clients, suppliers and stock items that don't exist yet."""
    for code, name, email, credit_limit in DEMO_CLIENTS:
        if Client.query.filter_by(customer_code=code).first():
            continue
        db.session.add(
            Client(
                customer_code=code,
                customer_name=name,
                email=email,
                credit_limit=credit_limit,
                current_balance=Decimal("0.00"),
            )
        )

    for code, name, contact in DEMO_SUPPLIERS:
        if Supplier.query.filter_by(supplier_code=code).first():
            continue
        db.session.add(
            Supplier(
                supplier_code=code,
                supplier_name=name,
                contact_person=contact,
                current_balance=Decimal("0.0000"),
            )
        )

    db.session.flush()

    for code, descr, cost, price, supplier in DEMO_STOCK:
        if StockItem.query.filter_by(stock_code=code).first():
            continue
        db.session.add(
            StockItem(
                stock_code=code,
                stock_descr=descr,
                cost_price=cost,
                last_cost=cost,
                selling_price=price,
                price_a=price,
                price_b=price,
                price_d=price,
                price_e=price,
                supplier=supplier,
                vat=Decimal("15.00"),
                quantity_on_hand=0,
                is_active=True,
            )
        )

    db.session.commit()
