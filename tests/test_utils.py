from datetime import date, datetime
from decimal import Decimal

from bizdesk.utils import (
    money,
    next_document_number,
    parse_bool,
    parse_date,
    parse_decimal,
    parse_optional_int,
    parse_positive_int,
)


def test_money_rounds_half_up():
    assert money("2.675") == Decimal("2.68")
    assert money(None) == Decimal("0.00")


def test_parse_decimal_accepts_comma():
    assert parse_decimal("12,50") == Decimal("12.50")
    assert parse_decimal(3) == Decimal("3")
    assert parse_decimal("") is None
    assert parse_decimal("abc") is None
    assert parse_decimal("NaN") is None
    assert parse_decimal(True) is None


def test_parse_optional_int():
    assert parse_optional_int("7") == 7
    assert parse_optional_int(" ") is None
    assert parse_optional_int("x") is None
    assert parse_optional_int(False) is None


def test_parse_bool_is_strict():
    assert parse_bool(True) is True
    assert parse_bool("false") is False
    assert parse_bool(" Yes ") is True
    assert parse_bool(0) is False
    assert parse_bool("maybe") is None
    assert parse_bool(2) is None
    assert parse_bool(None) is None


def test_parse_positive_int_accepts_integral_decimals():
    assert parse_positive_int(20) == 20
    assert parse_positive_int(20.0) == 20
    assert parse_positive_int("20.0") == 20
    assert parse_positive_int("1.5") is None
    assert parse_positive_int(0) is None
    assert parse_positive_int(True) is None


def test_parse_date():
    assert parse_date("2024-09-10") == date(2024, 9, 10)
    assert parse_date("2024-09-10T08:30:00") == date(2024, 9, 10)
    assert parse_date(datetime(2024, 9, 10, 8, 30)) == date(2024, 9, 10)
    assert parse_date("10/09/2024") is None


def test_next_document_number():
    assert next_document_number(None, "INV-") == "INV-001"
    assert next_document_number("INV-009", "INV-") == "INV-010"
    assert next_document_number("INV-999", "INV-") == "INV-1000"
    assert next_document_number("QUO-004", "INV-") == "INV-001"
    assert next_document_number("INV-ABC", "INV-") == "INV-001"
