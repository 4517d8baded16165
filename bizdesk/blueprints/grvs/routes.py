"""
bizdesk/blueprints/grvs/routes.py

Goods Received Voucher routes (JSON).

- GET  /grvs, /grvs/<id>
- POST /grvs          manual voucher {"reference", "date", "supplier_id", "order_no", "note", "items": [...]}
- POST /grvs/parse    multipart upload "file" -> draft for review (nothing recorded)
- POST /grvs/import   extractor payload -> recorded voucher (supplier_id optional override)

Responses for recorded vouchers include the intake outcome; "degraded": true means the
voucher was recorded but some stock or supplier updates failed.
"""

from __future__ import annotations

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...errors import ValidationError
from ...models import Grv
from ...serializers import grv_dict
from ...services.grv import draft_from_pdf, intake_parsed_grv, record_grv
from ...store import RecordStore
from ...utils import parse_optional_int

grvs_bp = Blueprint("grvs", __name__, url_prefix="/grvs")


def _payload() -> dict:
    payload = request.get_json(silent=True)
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object.")
    return payload


def _intake_response(result):
    body = grv_dict(result.grv)
    body["intake"] = result.to_dict()
    return jsonify(body), 201


@grvs_bp.route("")
@login_required
def list_grvs():
    criteria = {}
    supplier_id = parse_optional_int(request.args.get("supplier_id"))
    if supplier_id is not None:
        criteria["supplier_id"] = supplier_id

    grvs = RecordStore().filter_by(Grv, order_by=(Grv.date.desc(), Grv.id.desc()), **criteria)
    return jsonify([grv_dict(g) for g in grvs])


@grvs_bp.route("/<int:grv_id>")
@login_required
def get_grv(grv_id: int):
    return jsonify(grv_dict(RecordStore().get_or_raise(Grv, grv_id)))


@grvs_bp.route("", methods=["POST"])
@login_required
def create_grv():
    payload = _payload()
    return _intake_response(record_grv(payload, payload.get("items")))


@grvs_bp.route("/parse", methods=["POST"])
@login_required
def parse_grv():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("Upload a PDF in the 'file' field.")

    draft = draft_from_pdf(upload.read(), upload.filename)
    return jsonify(draft.to_dict())


@grvs_bp.route("/import", methods=["POST"])
@login_required
def import_grv():
    payload = _payload()
    result = intake_parsed_grv(
        payload,
        supplier_id=parse_optional_int(payload.get("supplier_id")),
        note=payload.get("note"),
    )
    return _intake_response(result)
