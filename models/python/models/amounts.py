"""Fixed-point credit arithmetic.

Balances, locks, listing quantities and prices are decimals with two
fractional digits. Every arithmetic result is quantized again so repeated
partial fills cannot drift.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Annotated, Any, Union

from pydantic import Field

from models.errors import ValidationError

TWO_PLACES = Decimal("0.01")
ZERO = Decimal("0.00")

Number = Union[Decimal, int, float, str]

# 16 integer digits and 2 fractional digits
MAX_DIGITS = 18
MAX_AMOUNT = Decimal("9999999999999999.99")

# request-model field type: positive, finite, at most two fractional digits
PositiveDecimal = Annotated[Decimal, Field(gt=0, allow_inf_nan=False, max_digits=MAX_DIGITS, decimal_places=2)]


def quantize(value: Number) -> Decimal:
    if isinstance(value, float):
        value = repr(value)
    try:
        return Decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValidationError(f"Amount out of range: {value}") from None


def parse_positive(value: Any, field: str = "amount") -> Decimal:
    """Validate a caller-supplied quantity or price: finite, at most
    ``MAX_AMOUNT``, and still positive after rounding to two places."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"Missing or invalid {field}")
    try:
        parsed = Decimal(repr(value) if isinstance(value, float) else str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field}") from None
    if not parsed.is_finite():
        raise ValidationError(f"Invalid {field}")
    if parsed > MAX_AMOUNT:
        raise ValidationError(f"{field.capitalize()} exceeds the maximum of {MAX_AMOUNT}")
    parsed = parsed.quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    if parsed <= ZERO:
        raise ValidationError(f"{field.capitalize()} must be a positive number")
    return parsed
