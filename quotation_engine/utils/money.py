"""
Fixed-point money helpers.

All monetary arithmetic goes through Decimal quantized to two places with
half-up rounding. Binary floats are converted through their string form so
0.1 stays 0.10.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation

CENT = Decimal("0.01")
ZERO = Decimal("0.00")
HUNDRED = Decimal("100")

# Largest value a Numeric(15, 2) column holds
MAX_MONEY = Decimal("9999999999999.99")


def to_decimal(value: object) -> Decimal:
    """Convert int/str/float/Decimal to a finite Decimal without binary drift."""
    if isinstance(value, bool):
        raise TypeError("bool is not a monetary value")
    if isinstance(value, float):
        value = repr(value)
    try:
        result = value if isinstance(value, Decimal) else Decimal(value)  # type: ignore[arg-type]
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a decimal value: {value!r}") from e
    if not result.is_finite():
        raise ValueError(f"Not a finite value: {value!r}")
    return result


def to_money(value: object) -> Decimal:
    """Quantize a value to cents."""
    try:
        return to_decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)
    except InvalidOperation as e:
        raise ValueError(f"Value out of range: {value!r}") from e


def percent_of(amount: Decimal, percent: Decimal) -> Decimal:
    """`percent`% of `amount`, rounded to cents."""
    return to_money(amount * percent / HUNDRED)


def fits_column(amount: Decimal) -> bool:
    return abs(amount) <= MAX_MONEY


def clamp_non_negative(amount: Decimal) -> Decimal:
    return amount if amount > ZERO else ZERO
