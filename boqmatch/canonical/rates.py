"""Locale-tolerant parsing of BOQ rate, quantity and amount cells."""

from __future__ import annotations

import math
import re
from typing import Any

_CURRENCY_PREFIX = re.compile(r"^[R$€£]\s*", re.IGNORECASE)
_NON_NUMERIC = re.compile(r"[^\d.]")


def parse_rate(value: Any) -> float:
    """Parse a currency/number cell into a non-negative float.

    Handles "R1,234.56", "1 234,56", "1.234,56", "€ 12", plain numbers and
    blanks. A single comma followed by exactly two digits is a decimal mark;
    when both "." and "," appear, whichever comes last is the decimal mark.

    Args:
        value: Raw cell value (None, number, or string)

    Returns:
        Parsed value, or 0.0 if the cell is empty or unparsable
    """
    if value is None or isinstance(value, bool):
        return 0.0

    if isinstance(value, (int, float)):
        number = float(value)
        if math.isnan(number) or math.isinf(number) or number < 0:
            return 0.0
        return number

    text = str(value).strip()
    if not text:
        return 0.0

    text = _CURRENCY_PREFIX.sub("", text).strip()

    has_comma = "," in text
    has_dot = "." in text

    if has_comma and not has_dot:
        parts = text.split(",")
        if len(parts) == 2 and len(parts[1].strip()) == 2:
            text = text.replace(",", ".")
        else:
            text = text.replace(",", "")
    elif has_comma and has_dot:
        if text.rfind(",") > text.rfind("."):
            text = text.replace(".", "").replace(",", ".")
        else:
            text = text.replace(",", "")

    negative = text.startswith("-")
    cleaned = _NON_NUMERIC.sub("", text)
    if not cleaned:
        return 0.0

    try:
        number = float(cleaned)
    except ValueError:
        return 0.0

    if negative or math.isnan(number) or math.isinf(number):
        # Rates, quantities and amounts are never negative
        return 0.0
    return number


def parse_optional(value: Any) -> float | None:
    """Parse a cell, mapping zero/unparsable to None."""
    number = parse_rate(value)
    return number or None
