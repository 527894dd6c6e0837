from decimal import Decimal

import pytest

from csv_utils import parse_amount, sanitize_csv_value
from formatting import format_currency, format_percent
from models import CurrencyCode


def test_format_currency_follows_locale() -> None:
    assert format_currency(123_450) == "1.234,50 €"
    assert format_currency(123_450, CurrencyCode.usd, "en-US") == "$1,234.50"
    assert format_currency(-5_000, "USD", "en-US") == "-$50.00"
    assert format_currency(123_450, "EUR", "es-ES", show_decimals=False) == "1.235 €"
    assert format_currency(99, "PEN", "es-PE") == "S/0.99"


def test_format_percent() -> None:
    assert format_percent(Decimal("20.00"), locale="en") == "+20.0%"
    assert format_percent(Decimal("-12.35")) == "-12,4%"
    assert format_percent(None) == "n/a"


def test_parse_amount_accepts_common_formats() -> None:
    assert parse_amount("12,50") == 1_250
    assert parse_amount("1.234,56 €") == 123_456
    assert parse_amount("$ 1,234.56") == 123_456
    assert parse_amount("7") == 700
    with pytest.raises(ValueError):
        parse_amount("abc")
    with pytest.raises(ValueError):
        parse_amount("-5")
    assert parse_amount("-5", allow_negative=True) == -500


def test_parse_amount_reads_three_digit_groups_as_thousands() -> None:
    assert parse_amount("1.234") == 123_400
    assert parse_amount("1,234") == 123_400
    assert parse_amount("1.234.567") == 123_456_700
    assert parse_amount("12,5") == 1_250


def test_sanitize_csv_value() -> None:
    assert sanitize_csv_value("=SUM(A1)") == "\t=SUM(A1)"
    assert sanitize_csv_value("  Rent ") == "Rent"
    assert sanitize_csv_value("") == ""
