"""
Shared fixtures: an app on in-memory SQLite with the schema created, a test client,
and small factories for master data.
"""

from __future__ import annotations

from decimal import Decimal

import pytest

from bizdesk import create_app
from bizdesk.extensions import db
from bizdesk.models import Client, StockItem, Supplier


@pytest.fixture
def app():
    app = create_app("config.TestConfig")
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_client(app):
    counter = {"n": 0}

    def _make(name="Acme Construction", balance="0.00", **extra):
        counter["n"] += 1
        record = Client(
            customer_code=extra.pop("customer_code", f"C{counter['n']:03d}"),
            customer_name=name,
            current_balance=Decimal(balance),
            **extra,
        )
        db.session.add(record)
        db.session.commit()
        return record

    return _make


@pytest.fixture
def make_supplier(app):
    counter = {"n": 0}

    def _make(name="Acme Hardware Supplies", balance="0", **extra):
        counter["n"] += 1
        record = Supplier(
            supplier_code=extra.pop("supplier_code", f"S{counter['n']:03d}"),
            supplier_name=name,
            current_balance=Decimal(balance),
            **extra,
        )
        db.session.add(record)
        db.session.commit()
        return record

    return _make


@pytest.fixture
def make_stock(app):
    def _make(code="BOLT-M8", qty=0, cost="10", price="15", **extra):
        record = StockItem(
            stock_code=code,
            stock_descr=extra.pop("stock_descr", f"{code} item"),
            quantity_on_hand=qty,
            cost_price=Decimal(cost),
            last_cost=Decimal(cost),
            selling_price=Decimal(price),
            **extra,
        )
        db.session.add(record)
        db.session.commit()
        return record

    return _make


def reload(model, record_id):
    """Fresh copy from the database, bypassing the identity map."""
    db.session.expire_all()
    return db.session.get(model, record_id)
