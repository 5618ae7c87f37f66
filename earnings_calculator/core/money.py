"""
Minor-unit money arithmetic.

All amounts are integers in the minor currency unit (kopecks). Rates are
Decimal fractions. Multiplication happens in Decimal and is rounded half up
back to an integer, so the same inputs always give the same result.
"""

from decimal import ROUND_HALF_UP, Decimal

MINOR_UNITS_PER_MAJOR = 100

_ONE = Decimal("1")


def apply_rate(amount: int, rate: Decimal) -> int:
    """
    Multiply an amount by a rate and round half up to whole minor units.

    Args:
        amount: Amount in minor units
        rate: Fraction, e.g. Decimal("0.13")

    Returns:
        Rounded product in minor units

    Example:
        >>> apply_rate(100_000, Decimal("0.04"))
        4000
        >>> apply_rate(5, Decimal("0.5"))
        3
    """
    product = Decimal(amount) * rate
    return int(product.quantize(_ONE, rounding=ROUND_HALF_UP))


def to_minor_units(value: Decimal | int | str) -> int:
    """
    Convert a major-unit value (rubles) to minor units (kopecks).

    Raises:
        ValueError: If the value has more precision than one kopeck
    """
    major = Decimal(str(value))
    minor = major * MINOR_UNITS_PER_MAJOR
    if minor != minor.to_integral_value():
        raise ValueError(f"Amount {value} has sub-kopeck precision")
    return int(minor)


def to_major_units(amount: int) -> Decimal:
    """Convert minor units to a Decimal in major units with 2 places."""
    return (Decimal(amount) / MINOR_UNITS_PER_MAJOR).quantize(Decimal("0.01"))
