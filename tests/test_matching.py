from datetime import date
from decimal import Decimal
from types import SimpleNamespace

from bizdesk.models import AuditLog, StockItem
from bizdesk.services.extraction import ParsedGrv, ParsedGrvItem
from bizdesk.services.matching import (
    AMBIGUOUS,
    MATCHED,
    NOT_FOUND,
    index_stock,
    match_stock,
    match_supplier,
    provision_stock_item,
    resolve_parsed_lines,
)
from bizdesk.store import RecordStore


def _suppliers(*names):
    return [SimpleNamespace(id=i, supplier_name=name) for i, name in enumerate(names, start=1)]


def test_supplier_substring_match_is_case_insensitive():
    match = match_supplier("acme hardware", _suppliers("ACME Hardware Supplies", "Coastal Timber"))
    assert match.status == MATCHED
    assert match.supplier.supplier_name == "ACME Hardware Supplies"


def test_supplier_several_candidates_are_ambiguous():
    match = match_supplier("Acme", _suppliers("Acme Hardware", "Acme Timber", "Coastal"))
    assert match.status == AMBIGUOUS
    assert match.supplier is None
    assert [c.supplier_name for c in match.candidates] == ["Acme Hardware", "Acme Timber"]


def test_exact_name_wins_among_candidates():
    match = match_supplier("acme", _suppliers("Acme", "Acme Timber"))
    assert match.status == MATCHED
    assert match.supplier.supplier_name == "Acme"


def test_supplier_not_found():
    assert match_supplier("Nobody", _suppliers("Acme")).status == NOT_FOUND
    assert match_supplier("", _suppliers("Acme")).status == NOT_FOUND


def test_stock_match_is_exact_on_code():
    index = index_stock([SimpleNamespace(stock_code="BOLT-M8"), SimpleNamespace(stock_code="PIPE-22")])
    assert match_stock("PIPE-22", index).stock_code == "PIPE-22"
    assert match_stock("pipe-22", index) is None


def test_provisioned_item_uses_markup_and_defaults(app):
    item = provision_stock_item(
        RecordStore(),
        stock_code="NEW-1",
        description="New widget",
        cost_price=Decimal("40.00"),
        supplier_name="Acme Hardware",
    )

    assert item.id is not None
    assert item.category == "Uncategorized"
    assert item.selling_price == Decimal("60.00")
    for tier in (item.price_a, item.price_b, item.price_d, item.price_e):
        assert tier == Decimal("60.00")
    assert item.vat == Decimal("15")
    assert item.quantity_on_hand == 0
    assert item.last_cost == Decimal("40.00")
    assert item.supplier == "Acme Hardware"
    assert AuditLog.query.filter_by(entity_type="StockItem", entity_id=item.id, action="CREATE").count() == 1


def test_provisioning_markup_comes_from_config(app):
    app.config["STOCK_MARKUP"] = Decimal("2")
    item = provision_stock_item(
        RecordStore(), stock_code="NEW-2", description="", cost_price="5", supplier_name=None
    )
    assert item.selling_price == Decimal("10")
    assert item.stock_descr == "NEW-2"


def _parsed(*items):
    return ParsedGrv(
        supplier_name="Acme Hardware",
        reference="GRV-1",
        date=date(2024, 9, 1),
        order_no=None,
        items=tuple(ParsedGrvItem(code, code.lower(), qty, Decimal(cost)) for code, qty, cost in items),
    )


def test_resolve_matches_existing_and_provisions_missing_once(app, make_stock):
    existing = make_stock(code="BOLT-M8", price="63")

    lines = resolve_parsed_lines(
        _parsed(("BOLT-M8", 5, "42"), ("NEW-9", 2, "10"), ("NEW-9", 1, "10")),
        RecordStore(),
    )

    assert [line.provisioned for line in lines] == [False, True, False]
    assert lines[0].stock_item_id == existing.id
    assert lines[0].selling_price == Decimal("63")
    assert lines[1].stock_item_id == lines[2].stock_item_id
    assert lines[1].selling_price == Decimal("15")
    assert StockItem.query.filter_by(stock_code="NEW-9").count() == 1


def test_resolve_reuses_inactive_stock_code(app, make_stock):
    retired = make_stock(code="OLD-1", is_active=False)

    lines = resolve_parsed_lines(_parsed(("OLD-1", 3, "10")), RecordStore())

    assert lines[0].stock_item_id == retired.id
    assert lines[0].provisioned is False
    assert StockItem.query.filter_by(stock_code="OLD-1").count() == 1
