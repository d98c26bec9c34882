from __future__ import annotations

import hypothesis.strategies as st
import pytest
from hypothesis import given

from hylo_engine.core.fee_curves import MINT_CURVE_POINTS, REDEEM_CURVE_POINTS, mint_fee_curve, redeem_fee_curve
from hylo_engine.core.fix import N5, IFix64
from hylo_engine.core.interp import FixInterp, Point
from hylo_engine.errors import ErrorCode, InterpolationError


def _x(bits: int) -> IFix64:
    return IFix64(bits, N5)


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_single_point_rejected() -> None:
    with pytest.raises(InterpolationError) as exc:
        FixInterp.from_values([(0, 100)], N5)
    assert exc.value.code is ErrorCode.INTERP_INSUFFICIENT_POINTS


def test_decreasing_x_rejected() -> None:
    with pytest.raises(InterpolationError) as exc:
        FixInterp.from_values([(100, 10), (50, 20)], N5)
    assert exc.value.code is ErrorCode.INTERP_POINTS_NOT_MONOTONIC


def test_duplicate_x_rejected() -> None:
    with pytest.raises(InterpolationError) as exc:
        FixInterp.from_values([(0, 10), (0, 20)], N5)
    assert exc.value.code is ErrorCode.INTERP_POINTS_NOT_MONOTONIC


def test_mixed_scales_rejected() -> None:
    with pytest.raises(InterpolationError):
        FixInterp.from_points([Point(IFix64(0, N5), IFix64(1, N5)), Point(IFix64(1, -6), IFix64(2, -6))])


# ---------------------------------------------------------------------------
# Lookup
# ---------------------------------------------------------------------------

def test_two_point_midpoint() -> None:
    curve = FixInterp.from_values([(0, 100), (100, 200)], N5)
    assert curve.interpolate(_x(50)) == _x(150)
    assert curve.interpolate(_x(0)) == _x(100)
    assert curve.interpolate(_x(100)) == _x(200)


@pytest.mark.parametrize("x", [-1, 101])
def test_out_of_domain(x: int) -> None:
    curve = FixInterp.from_values([(0, 100), (100, 200)], N5)
    with pytest.raises(InterpolationError) as exc:
        curve.interpolate(_x(x))
    assert exc.value.code is ErrorCode.INTERP_OUT_OF_DOMAIN


def test_interpolation_rounds_up() -> None:
    curve = FixInterp.from_values([(0, 0), (3, 1)], N5)
    assert curve.interpolate(_x(1)) == _x(1)


def test_shipped_curve_shapes() -> None:
    mint = mint_fee_curve()
    redeem = redeem_fee_curve()
    assert len(mint.points) == MINT_CURVE_POINTS
    assert len(redeem.points) == REDEEM_CURVE_POINTS
    assert mint.x_min() == _x(150_000)
    assert redeem.x_min() == _x(130_000)
    assert redeem.x_max() == _x(300_000)


def test_shipped_redeem_curve_values() -> None:
    redeem = redeem_fee_curve()
    assert redeem.interpolate(_x(130_000)) == _x(0)
    assert redeem.interpolate(_x(131_000)) == _x(23)
    assert redeem.interpolate(_x(151_000)) == _x(203)


def test_shipped_mint_curve_values() -> None:
    mint = mint_fee_curve()
    assert mint.interpolate(_x(150_500)) == _x(190)
    # The mint curve starts at 1.50; a ratio of 1.30 lies outside it.
    with pytest.raises(InterpolationError):
        mint.interpolate(_x(130_000))


@given(x=st.integers(min_value=130_000, max_value=300_000))
def test_redeem_curve_defined_and_bounded_across_domain(x: int) -> None:
    curve = redeem_fee_curve()
    y = curve.interpolate(_x(x))
    assert curve.y_min() <= y <= curve.y_max()


@given(a=st.integers(min_value=130_000, max_value=300_000), b=st.integers(min_value=130_000, max_value=300_000))
def test_redeem_curve_is_monotonic(a: int, b: int) -> None:
    lo, hi = sorted((a, b))
    curve = redeem_fee_curve()
    assert curve.interpolate(_x(lo)) <= curve.interpolate(_x(hi))
