"""
Oracle-derived collateral rebalancing price curves.

Two independent 2-point curves over the collateral ratio (N9):

- sell side, CR 1.20 to 1.35: the protocol sells collateral. Flat at the
  floor price below 1.20, inactive above 1.35.
- buy side, CR 1.65 to 1.75: the protocol buys collateral. Inactive below
  1.65, flat at the ceiling price above 1.75.

Curve prices are ``spot - floor_mult * conf`` and ``spot + ceil_mult * conf``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass

from ..errors import ErrorCode, FixedPointError, RebalanceError
from .fix import IFix64, N2, N9, UFix64
from .interp import FixInterp, Point
from .oracle import OraclePrice


CR_1_20 = IFix64(1_200_000_000, N9)
CR_1_35 = IFix64(1_350_000_000, N9)
CR_1_65 = IFix64(1_650_000_000, N9)
CR_1_75 = IFix64(1_750_000_000, N9)


@dataclass(frozen=True)
class RebalanceCurveConfig:
    floor_mult: UFix64
    ceil_mult: UFix64

    def __post_init__(self) -> None:
        for name, v in (("floor_mult", self.floor_mult), ("ceil_mult", self.ceil_mult)):
            if not isinstance(v, UFix64) or v.exp != N2:
                raise TypeError(f"{name} must be a UFix64 at N2")

    def validate(self) -> "RebalanceCurveConfig":
        if self.floor_mult.is_zero() or self.ceil_mult.is_zero():
            raise RebalanceError(ErrorCode.REBALANCE_CURVE_CONFIG_VALIDATION)
        return self


def _narrow(value: UFix64) -> IFix64:
    try:
        return value.narrow()
    except FixedPointError as exc:
        raise RebalanceError(ErrorCode.REBALANCE_PRICE_CONVERSION, str(exc)) from exc


def _scale_ci(ci: UFix64, mult: UFix64) -> UFix64:
    try:
        return ci.mul_div_ceil(mult, UFix64.one(N2))
    except FixedPointError as exc:
        raise RebalanceError(ErrorCode.REBALANCE_PRICE_CONSTRUCTION, str(exc)) from exc


def _build_curve(oracle: OraclePrice, config: RebalanceCurveConfig, x0: IFix64, x1: IFix64) -> FixInterp:
    try:
        floor = oracle.spot.checked_sub(_scale_ci(oracle.conf, config.floor_mult))
        ceil = oracle.spot.checked_add(_scale_ci(oracle.conf, config.ceil_mult))
    except FixedPointError as exc:
        raise RebalanceError(ErrorCode.REBALANCE_PRICE_CONSTRUCTION, str(exc)) from exc
    curve = FixInterp.from_points([Point(x0, _narrow(floor)), Point(x1, _narrow(ceil))])
    if not (curve.y_min().bits > 0 and curve.y_min() < curve.y_max()):
        raise RebalanceError(
            ErrorCode.REBALANCE_PRICE_CONSTRUCTION, f"prices {curve.y_min()} .. {curve.y_max()}"
        )
    return curve


@dataclass(frozen=True)
class _RebalanceCurve(ABC):
    curve: FixInterp

    @abstractmethod
    def price_inner(self, cr: IFix64) -> IFix64: ...

    def price(self, collateral_ratio: UFix64) -> UFix64:
        """Rebalance price (N9) at the given collateral ratio (N9)."""
        price = self.price_inner(_narrow(collateral_ratio))
        try:
            return price.widen()
        except FixedPointError as exc:
            raise RebalanceError(ErrorCode.REBALANCE_PRICE_CONVERSION, str(exc)) from exc


@dataclass(frozen=True)
class SellPriceCurve(_RebalanceCurve):
    @classmethod
    def new(cls, oracle: OraclePrice, config: RebalanceCurveConfig) -> "SellPriceCurve":
        return cls(_build_curve(oracle, config, CR_1_20, CR_1_35))

    def price_inner(self, cr: IFix64) -> IFix64:
        if cr < self.curve.x_min():
            return self.curve.y_min()
        if cr > self.curve.x_max():
            raise RebalanceError(ErrorCode.REBALANCE_SELL_INACTIVE, f"cr {cr}")
        return self.curve.interpolate(cr)


@dataclass(frozen=True)
class BuyPriceCurve(_RebalanceCurve):
    @classmethod
    def new(cls, oracle: OraclePrice, config: RebalanceCurveConfig) -> "BuyPriceCurve":
        return cls(_build_curve(oracle, config, CR_1_65, CR_1_75))

    def price_inner(self, cr: IFix64) -> IFix64:
        if cr < self.curve.x_min():
            raise RebalanceError(ErrorCode.REBALANCE_BUY_INACTIVE, f"cr {cr}")
        if cr > self.curve.x_max():
            return self.curve.y_max()
        return self.curve.interpolate(cr)
