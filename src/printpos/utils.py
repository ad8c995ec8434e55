"""Utility functions for printpos."""

import json
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping

from .errors import InvalidInputError

MONEY_QUANT = Decimal("0.01")
ZERO = Decimal("0")

# Amounts that differ by at most this much are treated as equal (rounding on old records)
TOLERANCE = Decimal("1")


def is_present(value: Any) -> bool:
    """True unless the value is None or a blank string."""
    if value is None:
        return False
    if isinstance(value, str) and not value.strip():
        return False
    return True


def first_present(record: Mapping[str, Any], keys: Iterable[str]) -> tuple[str, Any] | None:
    """
    Return the first (key, value) whose value is present.

    Keys may be dotted paths ("meta.specs") into nested mappings.
    """
    for key in keys:
        value = dig(record, key)
        if is_present(value):
            return key, value
    return None


def dig(record: Mapping[str, Any], path: str) -> Any:
    """Follow a dotted path through nested mappings, None if any hop is missing."""
    current: Any = record
    for part in path.split("."):
        if not isinstance(current, Mapping):
            return None
        current = current.get(part)
    return current


def to_decimal(value: Any, field: str) -> Decimal:
    """
    Convert a numeric value to Decimal.

    Floats go through str() so 0.1 stays 0.1.

    Raises:
        InvalidInputError: If the value is not a finite number.
    """
    if isinstance(value, bool):
        raise InvalidInputError(field, value, "not a number")
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip())
        except InvalidOperation:
            raise InvalidInputError(field, value, "not a number") from None
    else:
        raise InvalidInputError(field, value, "not a number")

    if not result.is_finite():
        raise InvalidInputError(field, value, "not a finite number")
    return result


def to_positive_decimal(value: Any, field: str) -> Decimal:
    """Convert to Decimal and require it to be > 0."""
    result = to_decimal(value, field)
    if result <= 0:
        raise InvalidInputError(field, value, "must be greater than zero")
    return result


def to_amount(value: Any, field: str) -> Decimal:
    """Convert a money amount, requiring it to be >= 0."""
    result = to_decimal(value, field)
    if result < 0:
        raise InvalidInputError(field, value, "must not be negative")
    return result


def quantize_money(value: Decimal) -> Decimal:
    """Round to cents, half up."""
    return value.quantize(MONEY_QUANT, rounding=ROUND_HALF_UP)


def money_out(value: Decimal) -> int | float:
    """Render a Decimal for JSON: int when integral, float otherwise."""
    if value == value.to_integral_value():
        return int(value)
    return float(value)


def format_number(value: Any) -> str:
    """Format a dimension without trailing zeros ("3", "1.5")."""
    number = to_decimal(value, "number")
    if number == number.to_integral_value():
        return str(int(number))
    return format(number.normalize(), "f")


def format_rupiah(value: Decimal) -> str:
    """Format an amount the way receipts print it: "Rp 25.000"."""
    if value == value.to_integral_value():
        return "Rp " + f"{int(value):,}".replace(",", ".")
    whole, _, cents = f"{quantize_money(value):,}".partition(".")
    return "Rp " + whole.replace(",", ".") + "," + cents


def parse_json_object(value: Any) -> dict[str, Any] | None:
    """
    Accept a mapping or a JSON string holding an object.

    Returns None for anything else, including malformed JSON.
    """
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, str) and value.strip():
        try:
            parsed = json.loads(value)
        except ValueError:
            return None
        if isinstance(parsed, dict):
            return parsed
    return None
