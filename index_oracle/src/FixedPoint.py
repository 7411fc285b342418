"""FixedPoint: 18-decimal integer arithmetic for rates, weights and pegs.

Every value handled by the oracle is an ``int`` scaled by ``10**18``
(``PRECISION``). Intermediate products are unbounded Python ints, but every
result must fit in an unsigned 256-bit word; anything else raises
:class:`ArithmeticOverflow`, matching the range of the on-chain values these
numbers are exchanged with.

.. code-block:: python

    >>> to_fixed("1.05")
    1050000000000000000
    >>> muldiv_fp(to_fixed("0.25"), to_fixed("4"))
    1000000000000000000
    >>> bankers_round(1_000_000_000_500_000_000, 9)
    1000000000000000000
"""

from __future__ import annotations

import math
from decimal import Decimal, InvalidOperation

from .errors import ArithmeticOverflow

DECIMALS = 18
PRECISION = 10**DECIMALS
MAX_U256 = 2**256 - 1

# Precision of the published peg value (decimal places).
PEG_DECIMALS = 9


def _checked(value: int) -> int:
    if value < 0 or value > MAX_U256:
        raise ArithmeticOverflow(f"Value {value} does not fit in 256 bits")
    return value


def to_fixed(value: str | int | Decimal) -> int:
    """Convert a decimal number into its 18-decimal integer representation.

    Strings are parsed exactly, without going through ``float``.

    :param value: Decimal text (e.g., "1831.26"), whole ``int`` or ``Decimal``.
    :returns: Value scaled by ``10**18``.
    :raises ValueError: If the value is not a number or has more than 18 decimals.
    :raises ArithmeticOverflow: If the scaled value does not fit in 256 bits.
    """
    if isinstance(value, int):
        return _checked(value * PRECISION)
    try:
        scaled = Decimal(str(value).strip()) * PRECISION
    except InvalidOperation as e:
        raise ValueError(f"Invalid decimal value '{value}'") from e
    if not scaled.is_finite() or scaled != scaled.to_integral_value():
        raise ValueError(f"Value '{value}' has more than {DECIMALS} decimals")
    return _checked(int(scaled))


def from_fixed(value: int) -> Decimal:
    """Convert an 18-decimal integer back into a ``Decimal``.

    :param value: Value scaled by ``10**18``.
    :returns: Exact decimal value.
    """
    return Decimal(value) / PRECISION


def muldiv(a: int, b: int, denominator: int) -> int:
    """Compute ``floor(a * b / denominator)`` without intermediate precision loss.

    :raises ArithmeticOverflow: On division by zero or a result outside 256 bits.
    """
    if denominator == 0:
        raise ArithmeticOverflow(f"Division by zero in muldiv({a}, {b}, 0)")
    return _checked((_checked(a) * _checked(b)) // denominator)


def muldiv_fp(a: int, b: int) -> int:
    """Multiply two 18-decimal values."""
    return muldiv(a, b, PRECISION)


def checked_add(a: int, b: int) -> int:
    """Add two values, raising if the sum leaves the 256-bit range."""
    return _checked(a + b)


def bankers_round(value: int, digits: int) -> int:
    """Round an 18-decimal value to ``digits`` decimals, ties to even.

    :param value: Value scaled by ``10**18``.
    :param digits: Number of decimals to keep (0-18).
    :returns: Rounded value, still scaled by ``10**18``.
    """
    if not 0 <= digits <= DECIMALS:
        raise ValueError(f"digits must be between 0 and {DECIMALS}")
    unit = 10 ** (DECIMALS - digits)
    quotient, remainder = divmod(value, unit)
    if remainder * 2 > unit or (remainder * 2 == unit and quotient % 2 == 1):
        quotient += 1
    return quotient * unit


def sqrt(value: int) -> int:
    """Square root of an 18-decimal value."""
    return _checked(math.isqrt(_checked(value) * PRECISION))


def relative_deviation(actual: int, expected: int) -> int:
    """Relative distance between two values, as an 18-decimal fraction of ``expected``.

    Two zeros are considered identical.

    :raises ArithmeticOverflow: If ``expected`` is zero and ``actual`` is not.
    """
    if actual == expected:
        return 0
    return muldiv(abs(actual - expected), PRECISION, expected)


def is_within_deviation(actual: int, expected: int, tolerance: int) -> bool:
    """Check that ``actual`` is within ``tolerance`` (18-decimal fraction) of ``expected``."""
    return relative_deviation(actual, expected) <= tolerance
