"""
Fixed-point helpers shared by the dimension resolver and the pricing engine.

All prices and areas are carried as Decimal and rounded half-up to 2 places,
once per line item. Floats only appear at the JSON boundary.
"""

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

TWO_PLACES = Decimal("0.01")

# Largest value a Numeric(12, 2) money or area column holds
MAX_AMOUNT = Decimal("9999999999.99")


def to_decimal(value) -> Decimal:
    """Convert an int/float/str/Decimal to Decimal via its string form.

    Going through str() keeps 23.77 as 23.77 instead of its binary float expansion.
    Raises ValueError for anything that isn't a finite number.
    """
    if isinstance(value, bool):
        raise ValueError(f"Not a number: {value!r}")
    if isinstance(value, Decimal):
        result = value
    else:
        try:
            result = Decimal(str(value).strip())
        except (InvalidOperation, TypeError):
            raise ValueError(f"Not a number: {value!r}")
    if not result.is_finite():
        raise ValueError(f"Not a finite number: {value!r}")
    return result


def round2(value) -> Decimal:
    """Round half-up to 2 decimal places.

    Raises ValueError when the value has too many digits to carry cents.
    """
    try:
        return to_decimal(value).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except InvalidOperation:
        raise ValueError(f"Out of range: {value!r}")
