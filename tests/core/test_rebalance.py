from __future__ import annotations

import pytest

from hylo_engine.core.fix import N2, N6, N9, UFix64
from hylo_engine.core.oracle import OraclePrice
from hylo_engine.core.rebalance_math import max_buyable_collateral, max_sellable_collateral
from hylo_engine.core.rebalance_pricing import BuyPriceCurve, RebalanceCurveConfig, SellPriceCurve, _RebalanceCurve
from hylo_engine.errors import ErrorCode, RebalanceError


ORACLE = OraclePrice(spot=UFix64(146_401_109_370, N9), conf=UFix64(94_635_820, N9))
CONFIG = RebalanceCurveConfig(UFix64(100, N2), UFix64(200, N2))

FLOOR = UFix64(146_306_473_550, N9)
CEIL = UFix64(146_590_381_010, N9)
MID = UFix64(146_448_427_280, N9)


def _cr(n3: int) -> UFix64:
    return UFix64(n3 * 1_000_000, N9)


# ---------------------------------------------------------------------------
# Price curves
# ---------------------------------------------------------------------------

def test_sell_curve_prices() -> None:
    curve = SellPriceCurve.new(ORACLE, CONFIG)
    assert curve.price(_cr(1_200)) == FLOOR
    assert curve.price(_cr(1_275)) == MID
    assert curve.price(_cr(1_350)) == CEIL
    # Flat at the floor below the curve.
    assert curve.price(_cr(1_050)) == FLOOR


def test_curve_base_needs_a_side() -> None:
    with pytest.raises(TypeError):
        _RebalanceCurve(SellPriceCurve.new(ORACLE, CONFIG).curve)


def test_sell_curve_inactive_above_range() -> None:
    curve = SellPriceCurve.new(ORACLE, CONFIG)
    with pytest.raises(RebalanceError) as exc:
        curve.price(_cr(1_351))
    assert exc.value.code is ErrorCode.REBALANCE_SELL_INACTIVE


def test_buy_curve_prices() -> None:
    curve = BuyPriceCurve.new(ORACLE, CONFIG)
    assert curve.price(_cr(1_650)) == FLOOR
    assert curve.price(_cr(1_700)) == MID
    assert curve.price(_cr(2_500)) == CEIL


def test_buy_curve_inactive_below_range() -> None:
    curve = BuyPriceCurve.new(ORACLE, CONFIG)
    with pytest.raises(RebalanceError) as exc:
        curve.price(_cr(1_649))
    assert exc.value.code is ErrorCode.REBALANCE_BUY_INACTIVE


def test_curve_config_validation() -> None:
    CONFIG.validate()
    with pytest.raises(RebalanceError) as exc:
        RebalanceCurveConfig(UFix64(0, N2), UFix64(200, N2)).validate()
    assert exc.value.code is ErrorCode.REBALANCE_CURVE_CONFIG_VALIDATION
    with pytest.raises(TypeError):
        RebalanceCurveConfig(UFix64(100, N9), UFix64(200, N2))


def test_curve_rejects_conf_wider_than_price() -> None:
    oracle = OraclePrice(spot=UFix64(100, N9), conf=UFix64(200, N9))
    with pytest.raises(RebalanceError) as exc:
        SellPriceCurve.new(oracle, CONFIG)
    assert exc.value.code is ErrorCode.REBALANCE_PRICE_CONSTRUCTION


# ---------------------------------------------------------------------------
# Sizing
# ---------------------------------------------------------------------------

TARGET = UFix64(150, N2)
SUPPLY = UFix64(100_000_000, N6)
PRICE = UFix64(2_000_000_000, N9)


def test_max_sellable_lands_on_target() -> None:
    # 60 units at $2 back 100 stablecoin: ratio 1.20.
    out = max_sellable_collateral(TARGET, SUPPLY, PRICE, UFix64(60_000_000_000, N9))
    assert out == UFix64(30_000_000_000, N9)


def test_max_buyable_lands_on_target() -> None:
    # 100 units at $2 back 100 stablecoin: ratio 2.00.
    out = max_buyable_collateral(TARGET, SUPPLY, PRICE, UFix64(100_000_000_000, N9))
    assert out == UFix64(50_000_000_000, N9)


def test_wrong_side_of_target_is_none() -> None:
    assert max_sellable_collateral(TARGET, SUPPLY, PRICE, UFix64(100_000_000_000, N9)) is None
    assert max_buyable_collateral(TARGET, SUPPLY, PRICE, UFix64(60_000_000_000, N9)) is None


def test_target_of_one_is_none() -> None:
    one = UFix64(100, N2)
    assert max_sellable_collateral(one, SUPPLY, PRICE, UFix64(1, N9)) is None
    assert max_buyable_collateral(one, SUPPLY, PRICE, UFix64(100_000_000_000, N9)) is None
