"""
bizdesk/blueprints/ledger/routes.py

Payments and statements (JSON).

- POST /payments                       client payment (reduces client balance)
- GET  /payments?client_id=
- POST /supplier-payments              supplier payment (reduces supplier balance)
- GET  /clients/<id>/statement?cutoff=YYYY-MM-DD   (default: today)
"""

from __future__ import annotations

from datetime import date

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...errors import ValidationError
from ...models import Payment, SupplierPayment
from ...serializers import payment_dict, supplier_payment_dict
from ...services.payments import record_payment, record_supplier_payment
from ...services.statements import client_statement
from ...store import RecordStore
from ...utils import parse_date, parse_optional_int

ledger_bp = Blueprint("ledger", __name__)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


# ---------------------------------------------------------------------
# Client payments
# ---------------------------------------------------------------------
@ledger_bp.route("/payments")
@login_required
def list_payments():
    criteria = {}
    client_id = parse_optional_int(request.args.get("client_id"))
    if client_id is not None:
        criteria["client_id"] = client_id

    payments = RecordStore().filter_by(Payment, order_by=(Payment.date.desc(), Payment.id.desc()), **criteria)
    return jsonify([payment_dict(p) for p in payments])


@ledger_bp.route("/payments", methods=["POST"])
@login_required
def create_payment():
    payment = record_payment(_payload())
    return jsonify(payment_dict(payment)), 201


# ---------------------------------------------------------------------
# Supplier payments
# ---------------------------------------------------------------------
@ledger_bp.route("/supplier-payments")
@login_required
def list_supplier_payments():
    criteria = {}
    supplier_id = parse_optional_int(request.args.get("supplier_id"))
    if supplier_id is not None:
        criteria["supplier_id"] = supplier_id

    payments = RecordStore().filter_by(
        SupplierPayment, order_by=(SupplierPayment.date.desc(), SupplierPayment.id.desc()), **criteria
    )
    return jsonify([supplier_payment_dict(p) for p in payments])


@ledger_bp.route("/supplier-payments", methods=["POST"])
@login_required
def create_supplier_payment():
    payment = record_supplier_payment(_payload())
    return jsonify(supplier_payment_dict(payment)), 201


# ---------------------------------------------------------------------
# Statements
# ---------------------------------------------------------------------
@ledger_bp.route("/clients/<int:client_id>/statement")
@login_required
def statement(client_id: int):
    raw_cutoff = request.args.get("cutoff")
    cutoff = parse_date(raw_cutoff) if raw_cutoff else date.today()
    if cutoff is None:
        raise ValidationError("cutoff must be YYYY-MM-DD.")

    return jsonify(client_statement(client_id, cutoff).to_dict())
