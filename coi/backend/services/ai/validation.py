"""
Value normalization utilities for extracted certificate data.

Handles:
- Currency limits ("$1,000,000" -> 1000000)
- Phone/fax numbers ("(800) 668-7020" -> "8006687020")
- Blank strings (never represent absence as "")
- Data cleaning (null removal from arrays)
"""

import logging
import math
import re
from decimal import Decimal, InvalidOperation
from typing import Any

from price_parser import Price

logger = logging.getLogger(__name__)


def blank_to_none(value: Any) -> Any:
    """Map empty/whitespace-only strings to None, strip the rest."""
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


def parse_limit_value(value: Any) -> int | None:
    """
    Parse a coverage limit to a whole-dollar integer using price-parser.

    Returns None for anything that is not a positive amount: None, "",
    "$", 0, "0", "N/A" and so on. Callers drop coverages that yield None.
    """
    if value is None or isinstance(value, bool):
        return None

    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        amount = int(value)
        return amount if amount > 0 else None

    if not isinstance(value, str):
        return None

    value = value.strip()
    if not value:
        return None

    try:
        price = Price.fromstring(value)
        amount = price.amount
        if amount is None:
            # Fallback: bare digits with separators price-parser did not recognise
            cleaned = re.sub(r"[^\d]", "", value)
            if not cleaned:
                return None
            amount = Decimal(cleaned)
        amount_int = int(amount)
    except (InvalidOperation, ValueError, AttributeError):
        return None

    return amount_int if amount_int > 0 else None


def normalize_phone(value: Any) -> str | None:
    """Reduce a phone or fax number to its digits; None when none remain."""
    if value is None:
        return None
    digits = re.sub(r"\D", "", str(value))
    return digits or None


def _clean_null_from_arrays(
    data: dict[str, Any] | list[Any] | Any,
) -> dict[str, Any] | list[Any] | Any:
    """
    Recursively remove None/null values from arrays in the data structure.

    Models sometimes pad insurer/policy/coverage lists with null rows.
    """
    if isinstance(data, dict):
        return {k: _clean_null_from_arrays(v) for k, v in data.items()}
    elif isinstance(data, list):
        # Filter out None/null items
        filtered = [x for x in data if x is not None]
        # Recursively clean nested structures
        return [_clean_null_from_arrays(item) for item in filtered]
    else:
        return data
