from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from bizdesk.errors import ExtractionError, GrvValidationError, PersistenceError, SupplierResolutionError
from bizdesk.models import AuditLog, Grv, GrvItem, StockItem, Supplier
from bizdesk.services.grv import draft_from_pdf, intake_parsed_grv, record_grv
from bizdesk.store import RecordStore

from conftest import reload


def _header(supplier_id=None, **extra):
    header = {"reference": "GRV-001", "date": "2024-09-01", "supplier_id": supplier_id}
    header.update(extra)
    return header


def _locked(*args):
    return OperationalError("UPDATE", {}, Exception("database is locked"))


def test_receipt_updates_stock_and_supplier(app, make_stock, make_supplier):
    stock = make_stock(code="BOLT-M8", qty=150, cost="45", price="63")
    supplier = make_supplier(balance="0")

    result = record_grv(
        _header(supplier.id),
        [{"stock_item_id": stock.id, "qty": 20, "cost_price": "50.00"}],
    )

    assert not result.degraded
    assert result.total_value == Decimal("1000.00")
    assert result.updated_stock_ids == [stock.id]
    assert result.supplier_updated

    stock = reload(StockItem, stock.id)
    assert stock.quantity_on_hand == 170
    assert stock.cost_price == Decimal("50.00")
    assert stock.last_cost == Decimal("50.00")
    assert stock.selling_price == Decimal("63")
    assert reload(Supplier, supplier.id).current_balance == Decimal("1000.00")

    grv = reload(Grv, result.grv.id)
    assert grv.reference == "GRV-001"
    assert [(i.qty, i.cost_price) for i in grv.items] == [(20, Decimal("50.00"))]
    assert AuditLog.query.filter_by(entity_type="Grv", action="RECEIVE").count() == 1


def test_explicit_selling_price_overwrites_stock_price(app, make_stock):
    stock = make_stock(qty=1, price="15")

    record_grv(_header(), [{"stock_item_id": stock.id, "qty": 1, "cost_price": 10, "selling_price": "19.99"}])

    assert reload(StockItem, stock.id).selling_price == Decimal("19.99")


def test_receipts_accumulate(app, make_stock, make_supplier):
    stock = make_stock(qty=0)
    supplier = make_supplier()

    for reference in ("GRV-A", "GRV-B"):
        record_grv(
            _header(supplier.id, reference=reference),
            [{"stock_item_id": stock.id, "qty": 5, "cost_price": "2.50"}],
        )

    assert reload(StockItem, stock.id).quantity_on_hand == 10
    assert reload(Supplier, supplier.id).current_balance == Decimal("25.00")


def test_line_without_stock_reference_is_recorded_only(app, make_supplier):
    supplier = make_supplier()

    result = record_grv(_header(supplier.id), [{"qty": 3, "cost_price": "4"}])

    assert result.updated_stock_ids == []
    assert not result.degraded
    assert reload(Supplier, supplier.id).current_balance == Decimal("12")


def test_empty_items_are_rejected_without_writes(app, make_supplier):
    supplier = make_supplier()

    with pytest.raises(GrvValidationError):
        record_grv(_header(supplier.id), [])

    assert Grv.query.count() == 0
    assert reload(Supplier, supplier.id).current_balance == Decimal("0")


@pytest.mark.parametrize(
    "item",
    [
        {"stock_item_id": None, "qty": 0, "cost_price": "1"},
        {"stock_item_id": None, "qty": -2, "cost_price": "1"},
        {"stock_item_id": None, "qty": 1, "cost_price": "-0.01"},
        {"stock_item_id": None, "qty": "two", "cost_price": "1"},
        {"stock_item_id": None, "qty": 1.5, "cost_price": "1"},
        {"stock_item_id": None, "qty": 1, "cost_price": "1", "selling_price": "-5"},
    ],
)
def test_invalid_items_are_rejected(app, item):
    with pytest.raises(GrvValidationError):
        record_grv(_header(), [item])
    assert Grv.query.count() == 0


@pytest.mark.parametrize("qty", [20.0, "20.0", "20"])
def test_whole_number_quantities_in_decimal_form_are_accepted(app, make_stock, qty):
    stock = make_stock(qty=0)

    result = record_grv(_header(), [{"stock_item_id": stock.id, "qty": qty, "cost_price": "1"}])

    assert not result.degraded
    assert reload(StockItem, stock.id).quantity_on_hand == 20


def test_missing_reference_and_date_are_rejected(app):

    with pytest.raises(GrvValidationError) as excinfo:
        record_grv({"reference": " ", "date": None}, [{"qty": 1, "cost_price": 1}])
    assert len(excinfo.value.details["problems"]) == 2


def test_unknown_supplier_is_rejected(app):
    with pytest.raises(GrvValidationError):
        record_grv(_header(404), [{"qty": 1, "cost_price": 1}])
    assert Grv.query.count() == 0


def test_failed_item_is_skipped_and_others_applied(app, make_stock, make_supplier, monkeypatch):
    first = make_stock(code="A-1", qty=10)
    broken = make_stock(code="B-1", qty=10)
    last = make_stock(code="C-1", qty=10)
    supplier = make_supplier()

    original = RecordStore.increment

    def flaky(self, model, record_id, deltas, **values):
        if model is StockItem and record_id == broken.id:
            raise _locked()
        return original(self, model, record_id, deltas, **values)

    monkeypatch.setattr(RecordStore, "increment", flaky)

    result = record_grv(
        _header(supplier.id),
        [
            {"stock_item_id": first.id, "qty": 1, "cost_price": 10},
            {"stock_item_id": broken.id, "qty": 2, "cost_price": 10},
            {"stock_item_id": last.id, "qty": 3, "cost_price": 10},
        ],
    )

    assert result.degraded
    assert result.updated_stock_ids == [first.id, last.id]
    assert [f.stock_item_id for f in result.stock_failures] == [broken.id]
    assert "locked" in result.stock_failures[0].error

    assert reload(StockItem, first.id).quantity_on_hand == 11
    assert reload(StockItem, broken.id).quantity_on_hand == 10
    assert reload(StockItem, last.id).quantity_on_hand == 13
    # The voucher and the supplier balance still reflect every line
    assert GrvItem.query.filter_by(grv_id=result.grv.id).count() == 3
    assert reload(Supplier, supplier.id).current_balance == Decimal("60")


def test_missing_stock_item_is_reported(app, make_supplier):
    supplier = make_supplier()

    result = record_grv(_header(supplier.id), [{"stock_item_id": 9999, "qty": 1, "cost_price": 5}])

    assert result.degraded
    assert result.stock_failures[0].stock_item_id == 9999
    assert result.to_dict()["stock_failures"][0]["stock_item_id"] == 9999
    assert Grv.query.count() == 1


def test_supplier_failure_keeps_grv_and_stock(app, make_stock, make_supplier, monkeypatch):
    stock = make_stock(qty=5)
    supplier = make_supplier()

    original = RecordStore.increment

    def supplier_down(self, model, record_id, deltas, **values):
        if model is Supplier:
            raise _locked()
        return original(self, model, record_id, deltas, **values)

    monkeypatch.setattr(RecordStore, "increment", supplier_down)

    result = record_grv(_header(supplier.id), [{"stock_item_id": stock.id, "qty": 5, "cost_price": 1}])

    assert result.degraded
    assert not result.supplier_updated
    assert "locked" in result.supplier_error
    assert reload(StockItem, stock.id).quantity_on_hand == 10
    assert reload(Supplier, supplier.id).current_balance == Decimal("0")
    assert Grv.query.count() == 1


def test_item_insert_failure_leaves_no_partial_grv(app, make_stock, make_supplier, monkeypatch):
    stock = make_stock(qty=5)
    supplier = make_supplier()

    def fail(self, records):
        raise _locked()

    monkeypatch.setattr(RecordStore, "insert_many", fail)

    with pytest.raises(PersistenceError):
        record_grv(_header(supplier.id), [{"stock_item_id": stock.id, "qty": 5, "cost_price": 1}])

    assert Grv.query.count() == 0
    assert reload(StockItem, stock.id).quantity_on_hand == 5
    assert reload(Supplier, supplier.id).current_balance == Decimal("0")


# ---------------------------------------------------------------------
# Parsed vouchers
# ---------------------------------------------------------------------
def _parsed_payload(supplier_name="Acme Hardware"):
    return {
        "supplier_name": supplier_name,
        "reference": "INV-5531",
        "date": "2024-09-02",
        "order_no": "PO-77",
        "items": [
            {"stock_code": "BOLT-M8", "description": "M8 bolts", "qty": 20, "cost_price": 50},
            {"stock_code": "NEW-9", "description": "New widget", "qty": 2, "cost_price": 10},
        ],
    }


def test_parsed_intake_matches_supplier_and_provisions_stock(app, make_stock, make_supplier):
    bolt = make_stock(code="BOLT-M8", qty=150, price="63")
    supplier = make_supplier(name="Acme Hardware Supplies")
    make_supplier(name="Coastal Timber")

    result = intake_parsed_grv(_parsed_payload())

    assert not result.degraded
    assert result.grv.supplier_id == supplier.id
    assert result.grv.order_no == "PO-77"

    assert reload(StockItem, bolt.id).quantity_on_hand == 170
    widget = StockItem.query.filter_by(stock_code="NEW-9").one()
    assert widget.quantity_on_hand == 2
    assert widget.selling_price == Decimal("15")
    assert widget.supplier == "Acme Hardware"
    assert reload(Supplier, supplier.id).current_balance == Decimal("1020")

    items = GrvItem.query.filter_by(grv_id=result.grv.id).order_by(GrvItem.id).all()
    assert [i.selling_price for i in items] == [Decimal("63"), Decimal("15")]


def test_parsed_intake_ambiguous_supplier(app, make_supplier):
    make_supplier(name="Acme Hardware North")
    make_supplier(name="Acme Hardware South")

    with pytest.raises(SupplierResolutionError) as excinfo:
        intake_parsed_grv(_parsed_payload())

    assert len(excinfo.value.candidates) == 2
    assert Grv.query.count() == 0


def test_parsed_intake_unknown_supplier(app):
    with pytest.raises(SupplierResolutionError) as excinfo:
        intake_parsed_grv(_parsed_payload("Nobody Ltd"))
    assert excinfo.value.candidates == []


def test_parsed_intake_explicit_supplier_wins(app, make_supplier):
    make_supplier(name="Acme Hardware North")
    south = make_supplier(name="Acme Hardware South")

    result = intake_parsed_grv(_parsed_payload(), supplier_id=south.id)

    assert result.grv.supplier_id == south.id


def test_parsed_intake_rejects_error_payload(app):
    with pytest.raises(GrvValidationError):
        intake_parsed_grv({"error": "unreadable scan"})
    assert Grv.query.count() == 0


def test_parsed_intake_reports_every_payload_problem(app, make_supplier):
    make_supplier(name="Acme")

    with pytest.raises(GrvValidationError) as excinfo:
        intake_parsed_grv({"supplier_name": "Acme", "reference": "X", "date": "2024-01-01", "items": []})

    assert excinfo.value.http_status == 400
    assert excinfo.value.details["problems"] == ["items must be a non-empty list"]
    assert Grv.query.count() == 0



def test_draft_from_pdf_provisions_but_does_not_record(app, make_supplier):
    supplier = make_supplier(name="Acme Hardware Supplies")

    draft = draft_from_pdf(b"%PDF-1.4", "grv.pdf", extractor=lambda data, name: _parsed_payload())

    assert draft.supplier_match.supplier.id == supplier.id
    assert [line.provisioned for line in draft.lines] == [True, True]
    assert Grv.query.count() == 0
    assert StockItem.query.count() == 2

    body = draft.to_dict()
    assert body["supplier"]["status"] == "matched"
    assert body["items"][0]["stock_code"] == "BOLT-M8"


def test_draft_from_pdf_extraction_failure(app):
    with pytest.raises(ExtractionError):
        draft_from_pdf(b"%PDF-1.4", "grv.pdf", extractor=lambda data, name: {"error": "no text layer"})
    assert StockItem.query.count() == 0
