"""
Boundary to the PDF extraction collaborator.

The extractor itself is opaque: any callable (data: bytes, filename: str) -> dict,
configured by import path in GRV_PDF_EXTRACTOR. Its payload is expected to be:

    {
        "supplier_name": str,
        "reference": str,
        "date": "YYYY-MM-DD",
        "order_no": str | None,
        "items": [{"stock_code": str, "description": str, "qty": int, "cost_price": number}],
    }

or {"error": "..."}. Payloads are checked field by field and wrapped in an
ExtractionResult before anything downstream sees them.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Any, Callable, Mapping

from flask import current_app
from werkzeug.utils import import_string

from ..errors import ExtractionError
from ..utils import parse_date, parse_decimal, parse_positive_int

logger = logging.getLogger(__name__)

Extractor = Callable[[bytes, str], Any]


@dataclass(frozen=True)
class ParsedGrvItem:
    stock_code: str
    description: str
    qty: int
    cost_price: Decimal


@dataclass(frozen=True)
class ParsedGrv:
    supplier_name: str
    reference: str
    date: date
    order_no: str | None
    items: tuple


@dataclass(frozen=True)
class ExtractionResult:
    """Either a validated ParsedGrv or an error message, never both."""

    grv: ParsedGrv | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.grv is not None

    @classmethod
    def success(cls, grv: ParsedGrv) -> "ExtractionResult":
        return cls(grv=grv)

    @classmethod
    def failure(cls, error: str) -> "ExtractionResult":
        return cls(error=error)

    def unwrap(self) -> ParsedGrv:
        if self.grv is None:
            raise ExtractionError(self.error or "PDF parsing failed.")
        return self.grv


def _text(value) -> str:
    if value is None:
        return ""
    return str(value).strip()


def validate_parsed_grv(payload: Any) -> ParsedGrv:
    """Check the extractor payload shape; raise ExtractionError listing every problem."""
    if not isinstance(payload, Mapping):
        raise ExtractionError("Extractor returned a non-object payload.")

    problems = []

    supplier_name = _text(payload.get("supplier_name"))
    if not supplier_name:
        problems.append("supplier_name is required")

    reference = _text(payload.get("reference"))
    if not reference:
        problems.append("reference is required")

    grv_date = parse_date(payload.get("date"))
    if grv_date is None:
        problems.append("date must be an ISO date")

    order_no = _text(payload.get("order_no")) or None

    raw_items = payload.get("items")
    items = []
    if not isinstance(raw_items, list) or not raw_items:
        problems.append("items must be a non-empty list")
        raw_items = []

    for idx, raw in enumerate(raw_items, start=1):
        if not isinstance(raw, Mapping):
            problems.append(f"item {idx} is not an object")
            continue

        stock_code = _text(raw.get("stock_code"))
        qty = parse_positive_int(raw.get("qty"))
        cost_price = parse_decimal(raw.get("cost_price"))

        if not stock_code:
            problems.append(f"item {idx}: stock_code is required")
        if qty is None:
            problems.append(f"item {idx}: qty must be a positive whole number")
        if cost_price is None or cost_price < 0:
            problems.append(f"item {idx}: cost_price must be a non-negative number")

        if stock_code and qty is not None and cost_price is not None and cost_price >= 0:
            items.append(
                ParsedGrvItem(
                    stock_code=stock_code,
                    description=_text(raw.get("description")) or stock_code,
                    qty=qty,
                    cost_price=cost_price,
                )
            )

    if problems:
        raise ExtractionError("Malformed extraction payload.", details={"problems": problems})

    return ParsedGrv(
        supplier_name=supplier_name,
        reference=reference,
        date=grv_date,
        order_no=order_no,
        items=tuple(items),
    )


def read_extraction_payload(payload: Any) -> ExtractionResult:
    """Tag an extractor payload as success or failure."""
    if isinstance(payload, Mapping) and payload.get("error"):
        return ExtractionResult.failure(f"PDF parsing failed: {payload['error']}")

    try:
        return ExtractionResult.success(validate_parsed_grv(payload))
    except ExtractionError as exc:
        problems = exc.details.get("problems")
        message = exc.message if not problems else f"{exc.message} {'; '.join(problems)}"
        return ExtractionResult.failure(message)


def load_extractor(import_path: str | None = None) -> Extractor:
    """Resolve the configured extractor callable ("package.module:function")."""
    path = import_path or current_app.config.get("GRV_PDF_EXTRACTOR")
    if not path:
        raise ExtractionError("No GRV PDF extractor configured (GRV_PDF_EXTRACTOR).")

    try:
        extractor = import_string(path)
    except ImportError as exc:
        raise ExtractionError(f"Cannot import GRV PDF extractor {path!r}.") from exc

    if not callable(extractor):
        raise ExtractionError(f"GRV PDF extractor {path!r} is not callable.")
    return extractor


def extract_grv(data: bytes, filename: str, extractor: Extractor | None = None) -> ExtractionResult:
    """Run the extractor on an uploaded document and validate what comes back."""
    if not data:
        return ExtractionResult.failure("Empty document.")

    extractor = extractor or load_extractor()

    try:
        payload = extractor(data, filename)
    except Exception as exc:
        # Anything the collaborator raises is reported as a failed extraction
        logger.exception("GRV extraction failed for %s", filename)
        return ExtractionResult.failure(f"PDF parsing failed: {exc}")

    result = read_extraction_payload(payload)
    if not result.ok:
        logger.warning("GRV extraction rejected for %s: %s", filename, result.error)
    return result
