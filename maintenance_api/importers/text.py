"""
Cleaning helpers for spreadsheet cells: Arabic text folding, phone numbers,
e-mail addresses, numbers and dates.
"""

from __future__ import annotations

import math
import re
from datetime import date, datetime, timedelta
from typing import Any, Optional, Tuple

import pandas as pd

_WHITESPACE = re.compile(r"\s+")
_ZERO_WIDTH = re.compile(r"[\u200b-\u200d\ufeff]")
_ALEF_FORMS = re.compile(r"[أإآ]")
_PHONE_NOISE = re.compile(r"[\s\-()]")
_PHONE = re.compile(r"^\+?\d+$")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

EXCEL_EPOCH = datetime(1899, 12, 30)


# PUBLIC_INTERFACE
def is_empty(value: Any) -> bool:
    """None, NaN/NaT and blank strings are empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        return False


def to_text(value: Any) -> str:
    if is_empty(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


# PUBLIC_INTERFACE
def clean_arabic_text(value: Any) -> str:
    """
    Normalize Arabic text for matching and storage.

    Trims, collapses whitespace, strips zero-width characters and folds
    letter variants: alef forms to bare alef, alef maqsura to yeh and
    teh marbuta to heh.
    """
    text = to_text(value)
    if not text:
        return ""
    text = _ZERO_WIDTH.sub("", text)
    text = _WHITESPACE.sub(" ", text).strip()
    text = _ALEF_FORMS.sub("ا", text)
    return text.replace("ى", "ي").replace("ة", "ه")


# PUBLIC_INTERFACE
def clean_phone_number(value: Any) -> Optional[str]:
    """Strip spaces, dashes and parentheses; None unless only digits (optionally '+') remain."""
    cleaned = _PHONE_NOISE.sub("", to_text(value))
    return cleaned if cleaned and _PHONE.match(cleaned) else None


# PUBLIC_INTERFACE
def clean_email(value: Any) -> Optional[str]:
    cleaned = to_text(value).lower()
    return cleaned if _EMAIL.match(cleaned) else None


# PUBLIC_INTERFACE
def parse_number(value: Any) -> Optional[float]:
    """Numbers pass through; strings may carry thousands separators. None when unparseable."""
    if is_empty(value):
        return None
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return None if isinstance(value, float) and math.isnan(value) else float(value)
    try:
        return float(str(value).replace(",", "").strip())
    except ValueError:
        return None


# PUBLIC_INTERFACE
def excel_serial_to_date(serial: float) -> datetime:
    """Convert an Excel serial day number (1900 date system) to a datetime."""
    return EXCEL_EPOCH + timedelta(days=float(serial))


# PUBLIC_INTERFACE
def parse_date(value: Any) -> Optional[datetime]:
    """Accept datetimes, dates, Excel serials and date strings; None when unparseable."""
    if is_empty(value):
        return None
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return excel_serial_to_date(value)
    parsed = pd.to_datetime(str(value).strip(), errors="coerce")
    return None if pd.isna(parsed) else parsed.to_pydatetime()


# PUBLIC_INTERFACE
def parse_arabic_name(full_name: Any) -> Tuple[str, str]:
    """Split a full name into (first name, remaining names)."""
    parts = clean_arabic_text(full_name).split(" ")
    parts = [p for p in parts if p]
    if not parts:
        return "", ""
    return parts[0], " ".join(parts[1:])


# PUBLIC_INTERFACE
def validate_required(value: Any, field_name: str) -> str:
    """Return the value as text or raise ValueError('<field> is required')."""
    if is_empty(value):
        raise ValueError(f"{field_name} is required")
    return to_text(value)

