from __future__ import annotations

import copy
from typing import Any, Dict

import hypothesis.strategies as st
import pytest
from hypothesis import given

from hylo_engine.core.fee_controller import FeeExtract, FeePair, LevercoinFees, StablecoinFees
from hylo_engine.core.fix import N2, N4, N5, N6, N9, UFix64
from hylo_engine.core.interpolated_fees import CurveStablecoinFees, _InterpolatedFees
from hylo_engine.core.stability_mode import StabilityMode
from hylo_engine.data import load_document
from hylo_engine.errors import ErrorCode, FeeError


STABLE = StablecoinFees(normal=FeePair.from_bps(10, 10), mode_1=FeePair.from_bps(50, 5))
LEVER = LevercoinFees(
    normal=FeePair.from_bps(50, 50),
    mode_1=FeePair.from_bps(20, 100),
    mode_2=FeePair.from_bps(0, 300),
)


def _cr(n2: int) -> UFix64:
    return UFix64(n2, N2).convert(N9)


# ---------------------------------------------------------------------------
# FeeExtract
# ---------------------------------------------------------------------------

def test_fee_extract_vector() -> None:
    fee = FeeExtract.new(UFix64(50, N4), UFix64(69_618_816_010, N9))
    assert fee.fees_extracted == UFix64(348_094_081, N9)
    assert fee.amount_remaining == UFix64(69_270_721_929, N9)


def test_fee_extract_rounds_fee_up() -> None:
    fee = FeeExtract.new(UFix64(1, N4), UFix64(1, N6))
    assert fee.fees_extracted.bits == 1
    assert fee.amount_remaining.bits == 0


def test_fee_above_one_fails() -> None:
    with pytest.raises(FeeError) as exc:
        FeeExtract.new(UFix64(10_001, N4), UFix64(1_000, N6))
    assert exc.value.code is ErrorCode.FEE_EXTRACTION


def test_zero_fee_extract() -> None:
    fee = FeeExtract.zero(UFix64(42, N6))
    assert fee.fees_extracted.is_zero()
    assert fee.amount_remaining == UFix64(42, N6)


@given(
    bps=st.integers(min_value=0, max_value=10_000),
    amount=st.integers(min_value=0, max_value=10**18),
)
def test_fee_extract_conserves_amount(bps: int, amount: int) -> None:
    amount_in = UFix64(amount, N9)
    fee = FeeExtract.new(UFix64(bps, N4), amount_in)
    assert fee.fees_extracted.checked_add(fee.amount_remaining) == amount_in


# ---------------------------------------------------------------------------
# Fee tables
# ---------------------------------------------------------------------------

def test_stablecoin_table() -> None:
    assert STABLE.mint_fee(StabilityMode.NORMAL) == UFix64(10, N4)
    assert STABLE.mint_fee(StabilityMode.MODE_1) == UFix64(50, N4)
    assert STABLE.redeem_fee(StabilityMode.MODE_1) == UFix64(5, N4)
    assert STABLE.redeem_fee(StabilityMode.MODE_2) == UFix64(0, N4)
    assert STABLE.redeem_fee(StabilityMode.DEPEG) == UFix64(0, N4)


@pytest.mark.parametrize("mode", [StabilityMode.MODE_2, StabilityMode.DEPEG])
def test_stablecoin_mint_closed_in_mode_2_and_depeg(mode: StabilityMode) -> None:
    with pytest.raises(FeeError) as exc:
        STABLE.mint_fee(mode)
    assert exc.value.code is ErrorCode.NO_VALID_STABLECOIN_MINT_FEE


def test_levercoin_table() -> None:
    assert LEVER.mint_fee(StabilityMode.MODE_2) == UFix64(0, N4)
    assert LEVER.redeem_fee(StabilityMode.MODE_2) == UFix64(300, N4)
    with pytest.raises(FeeError) as exc:
        LEVER.mint_fee(StabilityMode.DEPEG)
    assert exc.value.code is ErrorCode.NO_VALID_LEVERCOIN_MINT_FEE
    with pytest.raises(FeeError) as exc:
        LEVER.redeem_fee(StabilityMode.DEPEG)
    assert exc.value.code is ErrorCode.NO_VALID_LEVERCOIN_REDEEM_FEE


def test_levercoin_swap_fees() -> None:
    assert LEVER.swap_to_stablecoin_fee(StabilityMode.MODE_1) == UFix64(100, N4)
    assert LEVER.swap_from_stablecoin_fee(StabilityMode.MODE_2) == UFix64(0, N4)
    with pytest.raises(FeeError) as exc:
        LEVER.swap_to_stablecoin_fee(StabilityMode.MODE_2)
    assert exc.value.code is ErrorCode.NO_VALID_SWAP_FEE


def test_fee_pair_validation() -> None:
    FeePair.from_bps(9_999, 0).validate()
    with pytest.raises(FeeError) as exc:
        FeePair.from_bps(10_000, 0).validate()
    assert exc.value.code is ErrorCode.INVALID_FEES
    with pytest.raises(TypeError):
        FeePair(UFix64(10, N5), UFix64(10, N4))


# ---------------------------------------------------------------------------
# Curve fees
# ---------------------------------------------------------------------------

def test_curve_mint_fee() -> None:
    fees = CurveStablecoinFees.shipped()
    assert fees.mint_fee_at(StabilityMode.NORMAL, _cr(150)) == UFix64(200, N5)
    # Flat above the last point.
    assert fees.mint_fee_at(StabilityMode.NORMAL, _cr(250)) == UFix64(0, N5)
    with pytest.raises(FeeError) as exc:
        fees.mint_fee_at(StabilityMode.MODE_1, _cr(149))
    assert exc.value.code is ErrorCode.NO_VALID_STABLECOIN_MINT_FEE


def test_curve_redeem_fee_flat_tails() -> None:
    fees = CurveStablecoinFees.shipped()
    assert fees.redeem_fee_at(StabilityMode.MODE_2, _cr(110)) == UFix64(0, N5)
    assert fees.redeem_fee_at(StabilityMode.NORMAL, _cr(500)) == UFix64(300, N5)
    assert fees.redeem_fee_at(StabilityMode.NORMAL, UFix64(1_310_000_000, N9)) == UFix64(23, N5)


def test_curve_floor_and_validation() -> None:
    fees = CurveStablecoinFees.shipped()
    assert fees.redeem.cr_floor() == UFix64(130, N2)
    assert fees.mint.cr_floor() == UFix64(150, N2)
    fees.validate()


def _curve_document() -> Dict[str, Any]:
    return copy.deepcopy(dict(load_document("fee_curves.yaml")))


def test_curve_document_with_rate_of_one_is_rejected() -> None:
    doc = _curve_document()
    doc["redeem_fee"]["points"][-1][1] = 100_000
    with pytest.raises(FeeError) as exc:
        CurveStablecoinFees.from_document(doc)
    assert exc.value.code is ErrorCode.INVALID_FEES


def test_curve_document_with_wrong_precision_is_rejected() -> None:
    doc = _curve_document()
    doc["precision"] = -4
    with pytest.raises(FeeError) as exc:
        CurveStablecoinFees.from_document(doc)
    assert exc.value.code is ErrorCode.INVALID_FEES


def test_shipped_document_is_untouched_by_edits() -> None:
    _curve_document()["precision"] = -4
    assert CurveStablecoinFees.shipped().mint.curve.exp == N5


def test_curve_fee_base_needs_a_side() -> None:
    with pytest.raises(TypeError):
        _InterpolatedFees(CurveStablecoinFees.shipped().mint.curve)


def test_curve_fee_extract() -> None:
    fees = CurveStablecoinFees.shipped()
    fee = fees.redeem.apply_fee(_cr(150), UFix64(1_000_000_000, N9))
    # 200 at N5 is 0.2%.
    assert fee.fees_extracted == UFix64(2_000_000, N9)
