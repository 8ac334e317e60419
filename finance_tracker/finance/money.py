"""Currency rounding and response formatting."""

from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Iterable, Mapping, Union

CENT = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """Round to cents, half up."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


def format_money(value: Number) -> str:
    """Fixed two-decimal string, e.g. Decimal("123.4") -> "123.40"."""
    return f"{to_money(value):.2f}"


def format_fields(data: Mapping[str, Any], keys: Iterable[str]) -> dict[str, Any]:
    """
    Copy `data` with the named numeric fields as two-decimal strings.

    Missing or None fields are left untouched.
    """
    formatted = dict(data)
    for key in keys:
        value = formatted.get(key)
        if value is None or isinstance(value, bool):
            continue
        formatted[key] = format_money(value)
    return formatted
