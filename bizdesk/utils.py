"""
Utility functions shared across the app. This includes:
- Decimal helpers used by models and services (to_decimal, money).
- Input parsing helpers used by the JSON routes and the CLI (parse_decimal, parse_optional_int, parse_date,
  parse_bool, parse_positive_int).
- next_document_number: sequential INV-/QUO- numbering.
"""

from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

CENT = Decimal("0.01")


def to_decimal(value) -> Decimal:
    """Convert Numeric/float/str/None to Decimal safely (None -> 0)."""
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def money(value) -> Decimal:
    """Round to cents, half up."""
    return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def parse_decimal(value) -> Decimal | None:
    """Parse decimal from user input (accepts comma or dot)."""
    if value is None:
        return None
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return Decimal(str(value))
    raw = str(value).strip().replace(",", ".")
    if raw == "":
        return None
    try:
        parsed = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    if not parsed.is_finite():
        return None
    return parsed


def parse_optional_int(value) -> int | None:
    """Parse optional int from JSON/form/query."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_date(value) -> date | None:
    """Parse an ISO date (YYYY-MM-DD); datetimes are truncated to their date."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return date.fromisoformat(raw[:10])
    except ValueError:
        return None


def next_document_number(last_no: str | None, prefix: str) -> str:
    """
    Next sequential document number for a prefix:
      None / foreign prefix / non-numeric -> PREFIX001
      INV-009 -> INV-010, INV-999 -> INV-1000
    """
    if not last_no or not last_no.startswith(prefix):
        return f"{prefix}001"

    number_part = last_no[len(prefix):]
    if not number_part.isdigit():
        return f"{prefix}001"

    return f"{prefix}{int(number_part) + 1:03d}"


_TRUE_STRINGS = ("true", "1", "yes")
_FALSE_STRINGS = ("false", "0", "no")


def parse_bool(value) -> bool | None:
    """Strict flag parsing: real bools, 0/1 and true/false/yes/no strings; anything else -> None."""
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        raw = value.strip().lower()
        if raw in _TRUE_STRINGS:
            return True
        if raw in _FALSE_STRINGS:
            return False
    return None


def parse_positive_int(value) -> int | None:
    """Positive whole number from int or integral decimal input (20, "20", 20.0, "20.0")."""
    if isinstance(value, bool):
        return None
    number = parse_decimal(value)
    if number is None or number != number.to_integral_value() or number <= 0:
        return None
    return int(number)
