"""
Test Suite for the Sign / Magnitude Interpreter
"""

import pytest
from analysis.sign import (
    to_signed_int64,
    to_sign,
    basis_points_to_percent,
    basis_points_to_percentage_points,
    basis_points_to_fraction,
)


def test_signed_reinterpretation():
    assert to_signed_int64(0) == 0
    assert to_signed_int64(5) == 5
    assert to_signed_int64(2 ** 63 - 1) == 2 ** 63 - 1
    assert to_signed_int64(2 ** 63) == -(2 ** 63)
    assert to_signed_int64(2 ** 64 - 1) == -1


def test_sign_symmetry():
    assert to_sign(0) == 0
    assert to_sign(1) == 1
    assert to_sign(2 ** 64 - 1) == -1
    assert to_sign(2 ** 63) == -1
    assert to_sign(2 ** 63 - 1) == 1


def test_display_scale():
    assert basis_points_to_percent(20335, -1) == pytest.approx(-203.35)
    assert basis_points_to_percent(150, 1) == pytest.approx(1.5)


def test_statistical_scale():
    assert basis_points_to_percentage_points(20335, -1) == pytest.approx(-2.0335)
    assert basis_points_to_fraction(20335, -1) == pytest.approx(-0.020335)


def test_scales_differ():
    """Display percent is ten thousand times the statistical fraction."""
    assert basis_points_to_percent(20335, 1) == pytest.approx(basis_points_to_fraction(20335, 1) * 10000)


def test_missing_inputs():
    for convert in (basis_points_to_percent, basis_points_to_percentage_points, basis_points_to_fraction):
        assert convert(None, 1) is None
        assert convert(100, None) is None


def test_zero_sign_is_zero():
    assert basis_points_to_percent(500, 0) == 0
    assert basis_points_to_fraction(500, 0) == 0
