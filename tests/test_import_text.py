from datetime import datetime

import pytest

from maintenance_api.importers.text import (
    clean_arabic_text,
    clean_email,
    clean_phone_number,
    excel_serial_to_date,
    is_empty,
    parse_arabic_name,
    parse_date,
    parse_number,
    validate_required,
)


def test_clean_arabic_text_folds_letters_and_spacing():
    assert clean_arabic_text("  أحمد   مصطفى\u200b ") == "احمد مصطفي"
    assert clean_arabic_text("إدارة\ufeff الآلات") == "اداره الالات"
    assert clean_arabic_text(None) == ""
    assert clean_arabic_text(float("nan")) == ""


def test_numeric_cells_lose_trailing_zero():
    assert clean_arabic_text(1024.0) == "1024"


def test_phone_numbers():
    assert clean_phone_number("010 (1234) 56-78") == "01012345678"
    assert clean_phone_number("+20 100 000") == "+20100000"
    assert clean_phone_number("call me") is None
    assert clean_phone_number(None) is None


def test_emails():
    assert clean_email(" Ali@Example.COM ") == "ali@example.com"
    assert clean_email("not-an-email") is None


def test_parse_number():
    assert parse_number("1,250.5") == 1250.5
    assert parse_number(7) == 7.0
    assert parse_number("abc") is None
    assert parse_number("") is None


def test_excel_serial_dates():
    assert excel_serial_to_date(45000) == datetime(2023, 3, 15)
    assert parse_date(45000.5) == datetime(2023, 3, 15, 12)
    assert parse_date("2024-02-01") == datetime(2024, 2, 1)
    assert parse_date("not a date") is None
    assert parse_date(None) is None


def test_is_empty():
    assert is_empty(None)
    assert is_empty("   ")
    assert is_empty(float("nan"))
    assert not is_empty(0)
    assert not is_empty("x")


def test_parse_arabic_name():
    assert parse_arabic_name("محمد  علي حسن") == ("محمد", "علي حسن")
    assert parse_arabic_name("") == ("", "")


def test_validate_required():
    assert validate_required(" فرع ", "Branch Name") == "فرع"
    with pytest.raises(ValueError, match="Branch Name is required"):
        validate_required("", "Branch Name")