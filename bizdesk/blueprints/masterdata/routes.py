"""
bizdesk/blueprints/masterdata/routes.py

Master data routes (JSON).

- GET/POST /clients,   GET/PUT /clients/<id>
- GET/POST /suppliers, GET/PUT /suppliers/<id>
- GET/POST /stock,     GET/PUT /stock/<id>      (?active=true|false on the list)
- POST     /stock/<id>/adjust {"delta": -3}

Balances and quantity_on_hand are opening values on POST only; PUT refuses them.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...errors import ValidationError
from ...models import Client, StockItem, Supplier
from ...serializers import client_dict, stock_dict, supplier_dict
from ...services import masterdata
from ...store import RecordStore
from ...utils import parse_bool

masterdata_bp = Blueprint("masterdata", __name__)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


# ---------------------------------------------------------------------
# Clients
# ---------------------------------------------------------------------
@masterdata_bp.route("/clients")
@login_required
def list_clients():
    return jsonify([client_dict(c) for c in masterdata.list_records(masterdata.CLIENT)])


@masterdata_bp.route("/clients", methods=["POST"])
@login_required
def create_client():
    return jsonify(client_dict(masterdata.create_client(_payload()))), 201


@masterdata_bp.route("/clients/<int:client_id>")
@login_required
def get_client(client_id: int):
    return jsonify(client_dict(RecordStore().get_or_raise(Client, client_id)))


@masterdata_bp.route("/clients/<int:client_id>", methods=["PUT"])
@login_required
def update_client(client_id: int):
    return jsonify(client_dict(masterdata.update_client(client_id, _payload())))


# ---------------------------------------------------------------------
# Suppliers
# ---------------------------------------------------------------------
@masterdata_bp.route("/suppliers")
@login_required
def list_suppliers():
    return jsonify([supplier_dict(s) for s in masterdata.list_records(masterdata.SUPPLIER)])


@masterdata_bp.route("/suppliers", methods=["POST"])
@login_required
def create_supplier():
    return jsonify(supplier_dict(masterdata.create_supplier(_payload()))), 201


@masterdata_bp.route("/suppliers/<int:supplier_id>")
@login_required
def get_supplier(supplier_id: int):
    return jsonify(supplier_dict(RecordStore().get_or_raise(Supplier, supplier_id)))


@masterdata_bp.route("/suppliers/<int:supplier_id>", methods=["PUT"])
@login_required
def update_supplier(supplier_id: int):
    return jsonify(supplier_dict(masterdata.update_supplier(supplier_id, _payload())))


# ---------------------------------------------------------------------
# Stock
# ---------------------------------------------------------------------
@masterdata_bp.route("/stock")
@login_required
def list_stock():
    criteria = {}
    raw_active = request.args.get("active")
    if raw_active is not None:
        active = parse_bool(raw_active)
        if active is None:
            raise ValidationError("active must be true or false.")
        criteria["is_active"] = active

    return jsonify([stock_dict(s) for s in masterdata.list_records(masterdata.STOCK, **criteria)])


@masterdata_bp.route("/stock", methods=["POST"])
@login_required
def create_stock_item():
    return jsonify(stock_dict(masterdata.create_stock_item(_payload()))), 201


@masterdata_bp.route("/stock/<int:stock_item_id>")
@login_required
def get_stock_item(stock_item_id: int):
    return jsonify(stock_dict(RecordStore().get_or_raise(StockItem, stock_item_id)))


@masterdata_bp.route("/stock/<int:stock_item_id>", methods=["PUT"])
@login_required
def update_stock_item(stock_item_id: int):
    return jsonify(stock_dict(masterdata.update_stock_item(stock_item_id, _payload())))


@masterdata_bp.route("/stock/<int:stock_item_id>/adjust", methods=["POST"])
@login_required
def adjust_stock_item(stock_item_id: int):
    item = masterdata.adjust_stock_quantity(stock_item_id, _payload().get("delta"))
    return jsonify(stock_dict(item))
