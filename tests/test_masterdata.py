from decimal import Decimal

import pytest

from bizdesk.errors import MasterDataValidationError, RecordNotFoundError
from bizdesk.extensions import db
from bizdesk.models import AuditLog, Client, StockItem, Supplier
from bizdesk.services.masterdata import (
    STOCK,
    adjust_stock_quantity,
    create_client,
    create_stock_item,
    create_supplier,
    list_records,
    update_client,
    update_stock_item,
    update_supplier,
)

from conftest import reload


def test_create_client_with_opening_balance(app):
    acme = create_client(
        {"customer_code": " C100 ", "customer_name": "Acme Construction", "credit_limit": "5000", "current_balance": "250.50"}
    )

    acme = reload(Client, acme.id)
    assert acme.customer_code == "C100"
    assert acme.credit_limit == Decimal("5000.00")
    assert acme.current_balance == Decimal("250.50")
    assert AuditLog.query.filter_by(entity_type="Client", action="CREATE").count() == 1


def test_update_client_records_before_and_after(app, make_client):
    acme = make_client(balance="100")

    update_client(acme.id, {"customer_name": "Acme Holdings", "email": "accounts@acme.test"})

    acme = reload(Client, acme.id)
    assert acme.customer_name == "Acme Holdings"
    assert acme.email == "accounts@acme.test"
    assert acme.current_balance == Decimal("100.00")
    entry = AuditLog.query.filter_by(entity_type="Client", action="UPDATE").one()
    assert '"customer_name": "Acme Construction"' in entry.before_data
    assert '"customer_name": "Acme Holdings"' in entry.after_data


def test_balances_cannot_be_edited(app, make_client, make_supplier):
    acme = make_client(balance="100")
    supplier = make_supplier(balance="40")

    with pytest.raises(MasterDataValidationError):
        update_client(acme.id, {"current_balance": "0"})
    with pytest.raises(MasterDataValidationError):
        update_supplier(supplier.id, {"current_balance": "0"})

    assert reload(Client, acme.id).current_balance == Decimal("100.00")
    assert reload(Supplier, supplier.id).current_balance == Decimal("40")


def test_required_and_numeric_fields_are_checked(app):
    with pytest.raises(MasterDataValidationError) as excinfo:
        create_supplier({"supplier_code": " ", "supplier_name": "Acme", "ageing_balance": "lots"})
    assert len(excinfo.value.details["problems"]) == 2

    with pytest.raises(MasterDataValidationError):
        create_stock_item({"stock_code": "X", "stock_descr": "X", "vat": "120"})
    with pytest.raises(MasterDataValidationError):
        create_stock_item({"stock_code": "X", "stock_descr": "X", "cost_price": "-1"})
    with pytest.raises(MasterDataValidationError):
        create_stock_item({"stock_code": "X", "stock_descr": "X", "is_active": "sometimes"})
    assert StockItem.query.count() == 0


def test_duplicate_code_is_a_validation_error(app, make_supplier):
    make_supplier(supplier_code="S900")

    with pytest.raises(MasterDataValidationError) as excinfo:
        create_supplier({"supplier_code": "S900", "supplier_name": "Other"})

    assert "S900" in excinfo.value.message
    assert Supplier.query.count() == 1


def test_renaming_to_a_taken_code_is_rejected(app, make_stock):
    make_stock(code="A")
    other = make_stock(code="B")

    with pytest.raises(MasterDataValidationError):
        update_stock_item(other.id, {"stock_code": "A"})

    assert reload(StockItem, other.id).stock_code == "B"


def test_stock_item_defaults_and_opening_quantity(app):
    item = create_stock_item({"stock_code": "PIPE-15", "stock_descr": "15mm pipe", "category": "", "quantity_on_hand": 12})

    item = reload(StockItem, item.id)
    assert item.category == "Uncategorized"
    assert item.quantity_on_hand == 12
    assert item.vat == Decimal("15.00")


def test_stock_edit_refuses_quantity_on_hand(app, make_stock):
    item = make_stock(qty=10, price="15")

    with pytest.raises(MasterDataValidationError):
        update_stock_item(item.id, {"quantity_on_hand": 99})

    update_stock_item(item.id, {"selling_price": "18.50", "is_active": "false"})

    item = reload(StockItem, item.id)
    assert item.quantity_on_hand == 10
    assert item.selling_price == Decimal("18.50")
    assert item.is_active is False


def test_edit_keeps_quantity_changed_by_another_writer(app, make_stock):
    item = make_stock(qty=10)
    assert item.quantity_on_hand == 10
    db.session.execute(StockItem.__table__.update().where(StockItem.id == item.id).values(quantity_on_hand=15))

    update_stock_item(item.id, {"stock_descr": "Renamed"})

    item = reload(StockItem, item.id)
    assert item.stock_descr == "Renamed"
    assert item.quantity_on_hand == 15


def test_adjust_stock_quantity(app, make_stock):
    item = make_stock(qty=10)

    adjust_stock_quantity(item.id, -3)
    adjust_stock_quantity(item.id, "5")

    assert reload(StockItem, item.id).quantity_on_hand == 12
    assert AuditLog.query.filter_by(entity_type="StockItem", action="ADJUST").count() == 2


def test_adjust_below_zero_is_refused(app, make_stock):
    item = make_stock(qty=2)

    with pytest.raises(MasterDataValidationError):
        adjust_stock_quantity(item.id, -3)
    with pytest.raises(MasterDataValidationError):
        adjust_stock_quantity(item.id, 0)
    with pytest.raises(RecordNotFoundError):
        adjust_stock_quantity(404, 1)

    assert reload(StockItem, item.id).quantity_on_hand == 2
    assert AuditLog.query.filter_by(action="ADJUST").count() == 0


def test_list_records_orders_by_code(app, make_stock):
    make_stock(code="B")
    make_stock(code="A", is_active=False)

    assert [s.stock_code for s in list_records(STOCK)] == ["A", "B"]
    assert [s.stock_code for s in list_records(STOCK, is_active=True)] == ["B"]
