"""
Text utilities for spreadsheet headers and cell values.

Used by the column matcher and the record transformer.
"""

import math
import re
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any

_SEPARATORS = re.compile(r"[_\-\s]+")


def normalize_header(name: Any) -> str:
    """
    Normalize a column header or field name for fuzzy comparison.

    Lowercases and strips underscores, hyphens and whitespace:
    - "Full Name" → "fullname"
    - "e-mail_id" → "emailid"
    - "  Years of  Experience " → "yearsofexperience"

    Args:
        name: Header text (non-strings are converted first)

    Returns:
        Normalized string, empty if nothing remains
    """
    if name is None:
        return ""
    return _SEPARATORS.sub("", str(name).lower())


def cell_to_text(value: Any) -> str:
    """
    Coerce a spreadsheet cell to the string stored on a candidate.

    - None / NaN → ""
    - 5.0 → "5" (Excel stores whole numbers as floats)
    - datetime at midnight → "2025-01-31"
    - bool → "true" / "false"

    Args:
        value: Raw cell value from the parser

    Returns:
        String value, stripped of surrounding whitespace
    """
    if value is None:
        return ""

    if isinstance(value, bool):
        return "true" if value else "false"

    if isinstance(value, float):
        if math.isnan(value):
            return ""
        if value.is_integer():
            return str(int(value))
        return repr(value)

    if isinstance(value, Decimal):
        if value == value.to_integral_value():
            return str(int(value))
        return str(value)

    if isinstance(value, datetime):
        if value.time() == time(0, 0):
            return value.date().isoformat()
        return value.isoformat(sep=" ")

    if isinstance(value, date):
        return value.isoformat()

    return str(value).strip()


def is_blank(value: Any) -> bool:
    """True if the cell holds nothing worth importing."""
    return cell_to_text(value) == ""
