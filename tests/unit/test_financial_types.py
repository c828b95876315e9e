"""
Unit tests for float-based financial helpers.
"""

import math

from dnbacktest.core.types import (
    ONE,
    ZERO,
    annualize_funding_rate,
    finite_or,
    relative_close,
    safe_divide,
)


class TestFinancialConstants:
    """Test suite for financial constants."""

    def test_should_define_unit_constants(self) -> None:
        """Test float constants."""
        assert ZERO == 0.0
        assert ONE == 1.0


class TestSafeDivide:
    """Test suite for safe_divide."""

    def test_should_divide_normally(self) -> None:
        """Test regular division."""
        assert safe_divide(1.0, 4.0) == 0.25

    def test_should_return_fallback_for_zero_denominator(self) -> None:
        """Test division by zero fallback."""
        assert safe_divide(1.0, 0.0) == 0.0
        assert safe_divide(1.0, 0.0, fallback=-1.0) == -1.0

    def test_should_return_fallback_for_non_finite_result(self) -> None:
        """Test overflow fallback."""
        assert safe_divide(1e308, 1e-308, fallback=2.0) == 2.0

    def test_should_replace_non_finite_values(self) -> None:
        """Test finite_or."""
        assert finite_or(1.5, 0.0) == 1.5
        assert finite_or(math.nan, 0.0) == 0.0
        assert finite_or(-math.inf, 3.0) == 3.0


class TestFundingAnnualization:
    """Test suite for funding-rate annualization."""

    def test_should_annualize_eight_hour_rate(self) -> None:
        """Test 3 settlements per day over 365 days."""
        assert math.isclose(annualize_funding_rate(0.0001), 0.1095)

    def test_should_keep_sign(self) -> None:
        """Test negative rates stay negative."""
        assert annualize_funding_rate(-0.0002) < 0


class TestRelativeComparison:
    """Test suite for relative_close."""

    def test_should_compare_with_relative_tolerance(self) -> None:
        """Test compounding-scale comparisons."""
        assert relative_close(100000.0, 100000.0 * (1 + 1e-12))
        assert not relative_close(1.0, 1.001)
        assert relative_close(0.0, 0.0)
