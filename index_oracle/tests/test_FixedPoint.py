"""Unit tests for FixedPoint."""

from decimal import Decimal

import pytest

from index_oracle.src.errors import ArithmeticOverflow
from index_oracle.src.FixedPoint import (
    MAX_U256,
    PRECISION,
    bankers_round,
    checked_add,
    from_fixed,
    is_within_deviation,
    muldiv,
    muldiv_fp,
    relative_deviation,
    sqrt,
    to_fixed,
)


class TestToFixed:
    """Test conversion into 18-decimal integers."""

    def test_decimal_string(self) -> None:
        """Decimal text should be parsed exactly."""
        assert to_fixed("1.05") == 1_050_000_000_000_000_000
        assert to_fixed("29398.20") == 29_398_200_000_000_000_000_000
        assert to_fixed("0.0074") == 7_400_000_000_000_000

    def test_int_is_whole_units(self) -> None:
        """Integers count whole units."""
        assert to_fixed(3) == 3 * PRECISION

    def test_decimal_instance(self) -> None:
        """Decimal instances are accepted."""
        assert to_fixed(Decimal("0.25")) == PRECISION // 4

    def test_too_many_decimals(self) -> None:
        """More than 18 decimals cannot be represented."""
        with pytest.raises(ValueError, match="more than 18 decimals"):
            to_fixed("0.0000000000000000001")

    def test_not_a_number(self) -> None:
        """Garbage input should raise ValueError."""
        with pytest.raises(ValueError, match="Invalid decimal"):
            to_fixed("abc")

    def test_negative_value(self) -> None:
        """Negative values are out of range."""
        with pytest.raises(ArithmeticOverflow):
            to_fixed("-1")

    def test_from_fixed(self) -> None:
        """from_fixed should invert to_fixed."""
        assert from_fixed(to_fixed("1831.26")) == Decimal("1831.26")


class TestMulDiv:
    """Test multiply-then-divide helpers."""

    def test_floor(self) -> None:
        """Results are floored."""
        assert muldiv(10, 1, 3) == 3

    def test_muldiv_fp(self) -> None:
        """Multiplying two fixed values keeps 18 decimals."""
        assert muldiv_fp(to_fixed("0.25"), to_fixed(4)) == PRECISION

    def test_division_by_zero(self) -> None:
        """Zero denominator should raise ArithmeticOverflow."""
        with pytest.raises(ArithmeticOverflow, match="Division by zero"):
            muldiv(1, 1, 0)

    def test_intermediate_may_exceed_256_bits(self) -> None:
        """Only operands and result must fit in 256 bits."""
        assert muldiv(MAX_U256, 2, 2) == MAX_U256

    def test_result_overflow(self) -> None:
        """A result outside 256 bits should raise."""
        with pytest.raises(ArithmeticOverflow):
            muldiv(MAX_U256, 2, 1)

    def test_checked_add_overflow(self) -> None:
        """Addition past 256 bits should raise."""
        with pytest.raises(ArithmeticOverflow):
            checked_add(MAX_U256, 1)


class TestBankersRound:
    """Test round-half-to-even at 9 decimals."""

    def test_tie_to_even_down(self) -> None:
        """A tie with an even last digit rounds down."""
        assert bankers_round(1_000_000_000_500_000_000, 9) == 1_000_000_000_000_000_000

    def test_tie_to_even_up(self) -> None:
        """A tie with an odd last digit rounds up."""
        assert bankers_round(1_000_000_001_500_000_000, 9) == 1_000_000_002_000_000_000

    def test_above_half(self) -> None:
        assert bankers_round(1_000_000_001_600_000_000, 9) == 1_000_000_002_000_000_000

    def test_below_half(self) -> None:
        assert bankers_round(1_000_000_001_400_000_000, 9) == 1_000_000_001_000_000_000

    def test_exact_value_unchanged(self) -> None:
        assert bankers_round(to_fixed("11.325"), 9) == to_fixed("11.325")

    def test_invalid_digits(self) -> None:
        with pytest.raises(ValueError):
            bankers_round(1, 19)


class TestSqrtAndDeviation:
    """Test square root and relative deviation helpers."""

    def test_sqrt(self) -> None:
        """sqrt of a fixed value stays fixed."""
        assert sqrt(to_fixed(4)) == to_fixed(2)
        assert sqrt(to_fixed(100)) == to_fixed(10)

    def test_relative_deviation(self) -> None:
        """Deviation is relative to the expected value."""
        assert relative_deviation(to_fixed("1.1"), to_fixed(1)) == to_fixed("0.1")
        assert relative_deviation(to_fixed("0.9"), to_fixed(1)) == to_fixed("0.1")

    def test_relative_deviation_zeros(self) -> None:
        """Two zeros do not deviate."""
        assert relative_deviation(0, 0) == 0

    def test_relative_deviation_zero_expected(self) -> None:
        """A non-zero value cannot be compared to zero."""
        with pytest.raises(ArithmeticOverflow):
            relative_deviation(1, 0)

    def test_is_within_deviation(self) -> None:
        tolerance = to_fixed("0.05")
        assert is_within_deviation(to_fixed("1.05"), to_fixed(1), tolerance)
        assert not is_within_deviation(to_fixed("1.06"), to_fixed(1), tolerance)
