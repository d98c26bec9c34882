from __future__ import annotations

import hypothesis.strategies as st
import pytest
from hypothesis import given

from hylo_engine.core.fix import I64_MAX, N2, N6, N8, N9, U64_MAX, IFix64, UFix64
from hylo_engine.errors import ErrorCode, FixedPointError


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------

def test_one_and_zero() -> None:
    assert UFix64.one(N6).bits == 1_000_000
    assert UFix64.zero(N9).is_zero()
    assert str(UFix64(1_500_000, N6)) == "1.500000"
    assert str(IFix64(-250, N2)) == "-2.50"


def test_rejects_out_of_range_bits() -> None:
    with pytest.raises(ValueError):
        UFix64(-1, N6)
    with pytest.raises(ValueError):
        UFix64(U64_MAX + 1, N6)
    with pytest.raises(ValueError):
        IFix64(I64_MAX + 1, N6)


def test_rejects_bool_and_bad_exponent() -> None:
    with pytest.raises(TypeError):
        UFix64(True, N6)  # type: ignore[arg-type]
    with pytest.raises(ValueError):
        UFix64(1, 3)


# ---------------------------------------------------------------------------
# Same-scale arithmetic
# ---------------------------------------------------------------------------

def test_add_overflow() -> None:
    with pytest.raises(FixedPointError) as exc:
        UFix64.max_value(N6).checked_add(UFix64(1, N6))
    assert exc.value.code is ErrorCode.ARITHMETIC_OVERFLOW


def test_sub_underflow() -> None:
    with pytest.raises(FixedPointError) as exc:
        UFix64(0, N6).checked_sub(UFix64(1, N6))
    assert exc.value.code is ErrorCode.ARITHMETIC_UNDERFLOW


def test_mixed_scales_rejected() -> None:
    with pytest.raises(FixedPointError) as exc:
        UFix64(1, N6).checked_add(UFix64(1, N9))
    assert exc.value.code is ErrorCode.SCALE_MISMATCH
    with pytest.raises(FixedPointError):
        _ = UFix64(1, N6) < UFix64(1, N9)


def test_saturating_sub_clamps_at_zero() -> None:
    assert UFix64(5, N6).saturating_sub(UFix64(9, N6)) == UFix64(0, N6)
    assert UFix64(9, N6).saturating_sub(UFix64(5, N6)) == UFix64(4, N6)


def test_min_max() -> None:
    a, b = UFix64(3, N6), UFix64(7, N6)
    assert a.min(b) == a
    assert a.max(b) == b


@given(
    a=st.integers(min_value=0, max_value=U64_MAX // 2),
    b=st.integers(min_value=0, max_value=U64_MAX // 2),
)
def test_add_sub_round_trip(a: int, b: int) -> None:
    x, y = UFix64(a, N9), UFix64(b, N9)
    assert x.checked_add(y).checked_sub(y) == x


# ---------------------------------------------------------------------------
# Cross-scale arithmetic
# ---------------------------------------------------------------------------

def test_mul_div_rounding() -> None:
    x = UFix64(10, N6)
    three, one = UFix64(3, N6), UFix64(1, N6)
    assert x.mul_div_floor(one, three).bits == 3
    assert x.mul_div_ceil(one, three).bits == 4
    # Result keeps the receiver's scale.
    assert x.mul_div_floor(UFix64(1, N9), UFix64(1, N9)).exp == N6


def test_mul_div_requires_matching_operand_scales() -> None:
    with pytest.raises(FixedPointError) as exc:
        UFix64(10, N6).mul_div_floor(UFix64(1, N6), UFix64(1, N9))
    assert exc.value.code is ErrorCode.SCALE_MISMATCH


def test_mul_div_division_by_zero() -> None:
    with pytest.raises(FixedPointError) as exc:
        UFix64(10, N6).mul_div_floor(UFix64(1, N6), UFix64(0, N6))
    assert exc.value.code is ErrorCode.DIVISION_BY_ZERO


def test_mul_div_wide_intermediate() -> None:
    big = UFix64(U64_MAX, N9)
    assert big.mul_div_floor(UFix64(U64_MAX, N9), UFix64(U64_MAX, N9)) == big


def test_checked_div_exponent() -> None:
    q = UFix64(150_000_000_000, N9).checked_div(UFix64(150, N2))
    assert q.exp == -7
    assert q.bits == 1_000_000_000


def test_signed_mul_div_floor_rounds_down() -> None:
    x = IFix64(-10, N6)
    assert x.mul_div_floor(IFix64(1, N6), IFix64(3, N6)).bits == -4
    assert x.mul_div_ceil(IFix64(1, N6), IFix64(3, N6)).bits == -3


@given(
    a=st.integers(min_value=0, max_value=10**15),
    n=st.integers(min_value=0, max_value=10**9),
    d=st.integers(min_value=1, max_value=10**9),
)
def test_ceil_is_floor_or_floor_plus_one(a: int, n: int, d: int) -> None:
    x = UFix64(a, N9)
    floor = x.mul_div_floor(UFix64(n, N9), UFix64(d, N9))
    ceil = x.mul_div_ceil(UFix64(n, N9), UFix64(d, N9))
    assert ceil.bits - floor.bits in (0, 1)


# ---------------------------------------------------------------------------
# Conversion
# ---------------------------------------------------------------------------

def test_convert_gains_precision_exactly() -> None:
    assert UFix64(150, N2).convert(N9).bits == 1_500_000_000


def test_convert_truncates_toward_zero() -> None:
    assert UFix64(1_999_999, N6).convert(N2).bits == 199
    assert IFix64(-1_999_999, N6).convert(N2).bits == -199


def test_convert_overflow() -> None:
    with pytest.raises(FixedPointError) as exc:
        UFix64(U64_MAX, N2).convert(N9)
    assert exc.value.code is ErrorCode.CONVERSION_OVERFLOW


def test_narrow_and_widen() -> None:
    assert UFix64(5, N8).narrow() == IFix64(5, N8)
    assert IFix64(5, N8).widen() == UFix64(5, N8)
    with pytest.raises(FixedPointError):
        UFix64(I64_MAX + 1, N8).narrow()
    with pytest.raises(FixedPointError):
        IFix64(-1, N8).widen()
