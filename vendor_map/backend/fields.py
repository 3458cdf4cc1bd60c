"""
Field resolution and numeric normalization for raw dashboard rows.
Source files disagree on column names and number formatting, so every
logical field is read through an ordered list of candidate keys.
"""
import math
import re
from numbers import Real
from typing import Any, Mapping

import pandas as pd


# ============================================================================
# Candidate Keys
# ============================================================================

# Print distribution rows
PRINT_ZIP_KEYS = ["zip", "ZIP Code"]
PRINT_VENDOR_KEYS = ["vendor"]
PRINT_QUANTITY_KEYS = ["quantity", "Quantity"]
PRINT_NOTES_KEYS = ["notes"]

# Visitor rows
VISITOR_ZIP_KEYS = ["zipcode", "Zipcode", "ZIP"]
VISITOR_COUNT_KEYS = ["visitors", "Visitors"]

# Store rows
STORE_NAME_KEYS = ["name", "Name"]
STORE_LAT_KEYS = ["lat", "latitude", "Latitude"]
STORE_LNG_KEYS = ["lng", "longitude", "Longitude"]
STORE_ADDRESS_KEYS = ["address", "Address"]

# Boundary feature properties (2020 census ZCTA first, then 2010)
BOUNDARY_ZIP_KEYS = ["ZCTA5CE20", "ZCTA5CE10"]

# Literal markers that mean "no value" in the visitor exports
MISSING_MARKERS = {"N/A", "NA", "NULL", "NONE", "NAN", "UNDEFINED"}

# Optional ">" bound, digits with optional thousands separators and decimals,
# optional K scale suffix.
_NUMBER_PATTERN = re.compile(
    r"^(?P<bound>>)?\s*(?P<number>\d[\d,]*(?:\.\d+)?|\.\d+)\s*(?P<scale>[kK])?$"
)


def is_blank(value: Any) -> bool:
    """True for None, NaN/NA and whitespace-only strings."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    try:
        return bool(pd.isna(value))
    except (TypeError, ValueError):
        # pd.isna on list-likes returns an array
        return False


def resolve_field(row: Mapping[str, Any], candidates: list[str], default: Any = None) -> Any:
    """
    Return the value of the first candidate key that is present and non-blank.

    Args:
        row: A single raw record
        candidates: Column names to try, in priority order
        default: Returned when no candidate holds a value

    Returns:
        The raw (unconverted) field value, or default
    """
    for key in candidates:
        if key in row and not is_blank(row[key]):
            return row[key]
    return default


def resolve_text(row: Mapping[str, Any], candidates: list[str], default: str = "") -> str:
    """Resolve a field and return it as a stripped string."""
    value = resolve_field(row, candidates)
    if value is None:
        return default
    return str(value).strip()


# ============================================================================
# Numeric Normalization
# ============================================================================

def parse_count(value: Any) -> int | None:
    """
    Parse a human-formatted count into an integer.

    Accepted forms: plain numbers, "1,234" (thousands separators),
    "1.2K" (thousands scale) and ">500" (lower bound, collapsed to the bound).
    Fractional results are truncated, except for K-scaled values which are
    rounded to the nearest integer.

    Args:
        value: Raw field value (number, numeric string, or marked string)

    Returns:
        The parsed integer, or None when the value is missing or not a number.
        Zero and negative results are returned as-is; callers decide whether
        they contribute.
    """
    if is_blank(value) or isinstance(value, bool):
        return None

    if isinstance(value, Real):
        number = float(value)
        if not math.isfinite(number):
            return None
        return int(number)

    text = str(value).strip()
    if text.upper() in MISSING_MARKERS:
        return None

    negative = text.startswith("-")
    if negative:
        text = text[1:].lstrip()

    match = _NUMBER_PATTERN.match(text)
    if not match:
        return None

    number = float(match.group("number").replace(",", ""))
    if match.group("scale"):
        result = int(round(number * 1000))
    else:
        result = int(number)
    return -result if negative else result


def parse_coordinate(value: Any) -> float | None:
    """Parse a latitude/longitude value; None unless it is a finite number."""
    if is_blank(value) or isinstance(value, bool):
        return None
    try:
        number = float(str(value).strip()) if isinstance(value, str) else float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number):
        return None
    return number


def normalize_area_code(value: Any) -> str:
    """
    Normalize a postal code value to a trimmed string.
    Whole floats (12345.0, as pandas produces for numeric columns with gaps)
    lose their decimal part. Blank values become "".
    """
    if is_blank(value):
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip()
