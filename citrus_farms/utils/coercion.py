"""
Tolerant value coercion for loosely-typed stored records.

Provides utilities for:
- Coercing JSON scalars to the types the record models expect
- Defaulting nulls and wrong-typed containers
- Minting record identifiers
"""
from enum import Enum
from typing import Any, Optional, Type
import math
import uuid


def new_id() -> str:
    """
    Mint a random unique record identifier.

    Returns:
        32-character hex token
    """
    return uuid.uuid4().hex


def as_dict(value: Any) -> dict:
    """Return value if it is a mapping, else an empty dict."""
    return value if isinstance(value, dict) else {}


def as_list(value: Any) -> list:
    """Return value if it is a list, else an empty list."""
    return value if isinstance(value, list) else []


def as_str(value: Any, default: str = "") -> str:
    """
    Coerce a scalar to a string.

    Args:
        value: Raw value
        default: Returned for None and containers

    Returns:
        String value
    """
    if value is None or isinstance(value, (dict, list)):
        return default
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def as_optional_str(value: Any) -> Optional[str]:
    """Coerce to a string, keeping None and empty values as None."""
    text = as_str(value)
    return text or None


def as_bool(value: Any) -> bool:
    """
    Coerce a flag, accepting the string spellings spreadsheets produce.

    Args:
        value: Raw value

    Returns:
        Boolean value
    """
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        return value != 0
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "y", "yes")
    return False


def as_float(value: Any, default: float = 0.0, minimum: Optional[float] = None) -> float:
    """
    Coerce a number, optionally clamping it from below.

    Args:
        value: Raw value (numbers and numeric strings, commas allowed)
        default: Returned for anything unparseable
        minimum: Lower bound applied after parsing

    Returns:
        Float value
    """
    if isinstance(value, (bool, int, float)):
        try:
            number = float(value)
        except OverflowError:
            number = default
    elif isinstance(value, str):
        try:
            number = float(value.replace(",", "").strip())
        except ValueError:
            number = default
    else:
        number = default

    if math.isnan(number) or math.isinf(number):
        number = default
    if minimum is not None and number < minimum:
        number = minimum
    return number


def as_int(value: Any, default: int = 0, minimum: Optional[int] = None) -> int:
    """Coerce to an integer, truncating fractional values."""
    number = int(as_float(value, default=float(default)))
    if minimum is not None and number < minimum:
        number = minimum
    return number


def as_optional_int(value: Any, minimum: Optional[int] = None) -> Optional[int]:
    """Coerce to an integer, keeping missing values as None."""
    if value is None or value == "":
        return None
    return as_int(value, minimum=minimum)


def as_enum_value(value: Any, enum_cls: Type[Enum]) -> str:
    """
    Match a raw value against an enum by stored value or member name.

    Args:
        value: Raw value
        enum_cls: Enum whose values are the stored representation

    Returns:
        The enum's stored value, or "" when nothing matches
    """
    text = as_str(value).strip()
    if not text:
        return ""
    for member in enum_cls:
        if text == member.value or text.upper() == member.name:
            return member.value
    return ""
