"""
bizdesk/blueprints/documents/routes.py

Invoice and quote routes (JSON).

Includes:
- list / detail / create / full update for invoices and quotes
- invoice status changes
- quote -> invoice conversion

IMPORTANT:
- Totals sent by the client are ignored; the services always recompute them from the lines.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...errors import ValidationError
from ...models import Invoice, Quote
from ...serializers import invoice_dict, quote_dict
from ...services import documents
from ...store import RecordStore
from ...utils import parse_date, parse_optional_int

documents_bp = Blueprint("documents", __name__)


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


# ---------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------
@documents_bp.route("/invoices")
@login_required
def list_invoices():
    criteria = {}
    client_id = parse_optional_int(request.args.get("client_id"))
    if client_id is not None:
        criteria["client_id"] = client_id
    status = (request.args.get("status") or "").strip()
    if status:
        criteria["status"] = status

    invoices = RecordStore().filter_by(Invoice, order_by=(Invoice.date.desc(), Invoice.id.desc()), **criteria)
    return jsonify([invoice_dict(i) for i in invoices])


@documents_bp.route("/invoices/<int:invoice_id>")
@login_required
def get_invoice(invoice_id: int):
    return jsonify(invoice_dict(RecordStore().get_or_raise(Invoice, invoice_id)))


@documents_bp.route("/invoices", methods=["POST"])
@login_required
def create_invoice():
    invoice = documents.create_invoice(_payload())
    return jsonify(invoice_dict(invoice)), 201


@documents_bp.route("/invoices/<int:invoice_id>", methods=["PUT"])
@login_required
def update_invoice(invoice_id: int):
    invoice = documents.update_invoice(invoice_id, _payload())
    return jsonify(invoice_dict(invoice))


@documents_bp.route("/invoices/<int:invoice_id>/status", methods=["POST"])
@login_required
def set_invoice_status(invoice_id: int):
    invoice = documents.set_invoice_status(invoice_id, _payload().get("status"))
    return jsonify(invoice_dict(invoice))


# ---------------------------------------------------------------------
# Quotes
# ---------------------------------------------------------------------
@documents_bp.route("/quotes")
@login_required
def list_quotes():
    criteria = {}
    client_id = parse_optional_int(request.args.get("client_id"))
    if client_id is not None:
        criteria["client_id"] = client_id

    quotes = RecordStore().filter_by(Quote, order_by=(Quote.date.desc(), Quote.id.desc()), **criteria)
    return jsonify([quote_dict(q) for q in quotes])


@documents_bp.route("/quotes/<int:quote_id>")
@login_required
def get_quote(quote_id: int):
    return jsonify(quote_dict(RecordStore().get_or_raise(Quote, quote_id)))


@documents_bp.route("/quotes", methods=["POST"])
@login_required
def create_quote():
    quote = documents.create_quote(_payload())
    return jsonify(quote_dict(quote)), 201


@documents_bp.route("/quotes/<int:quote_id>", methods=["PUT"])
@login_required
def update_quote(quote_id: int):
    quote = documents.update_quote(quote_id, _payload())
    return jsonify(quote_dict(quote))


@documents_bp.route("/quotes/<int:quote_id>/convert", methods=["POST"])
@login_required
def convert_quote(quote_id: int):
    payload = request.get_json(silent=True) or {}
    raw_date = payload.get("date")
    invoice_date = parse_date(raw_date)
    if raw_date and invoice_date is None:
        raise ValidationError("date must be YYYY-MM-DD.")

    invoice = documents.convert_quote_to_invoice(
        quote_id,
        invoice_date=invoice_date,
        is_vat_invoice=payload.get("is_vat_invoice", True),
    )
    return jsonify(invoice_dict(invoice)), 201
