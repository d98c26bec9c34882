"""
Curve-based stablecoin fees.

The fee is a continuous function of the projected collateral ratio. Outside
the curve's domain:

- mint: below the domain there is no valid fee (minting is closed), above
  it the fee flattens at ``y_max``
- redeem: flat at ``y_min`` below the domain and ``y_max`` above it
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Mapping

from ..data import load_document
from ..errors import ErrorCode, FeeError, FixedPointError
from .fee_controller import FeeExtract
from .fee_curves import mint_curve_from_document, redeem_curve_from_document
from .fix import IFix64, N2, N5, UFix64
from .interp import FixInterp
from .stability_mode import StabilityMode


def narrow_cr(cr: UFix64) -> IFix64:
    """Collateral ratio at N9 to the signed N5 domain of the fee curves."""
    try:
        return cr.convert(N5).narrow()
    except FixedPointError as exc:
        raise FeeError(ErrorCode.COLLATERAL_RATIO_CONVERSION, str(exc)) from exc


@dataclass(frozen=True)
class _InterpolatedFees(ABC):
    curve: FixInterp

    @abstractmethod
    def fee_inner(self, cr: IFix64) -> IFix64: ...

    def fee(self, cr: UFix64) -> UFix64:
        try:
            return self.fee_inner(narrow_cr(cr)).widen()
        except FixedPointError as exc:
            raise FeeError(ErrorCode.INTERP_FEE_CONVERSION, str(exc)) from exc

    def apply_fee(self, cr: UFix64, amount_in: UFix64) -> FeeExtract:
        return FeeExtract.new(self.fee(cr), amount_in)

    def cr_floor(self) -> UFix64:
        """Lowest collateral ratio on the curve, at N2."""
        try:
            return self.curve.x_min().widen().convert(N2)
        except FixedPointError as exc:
            raise FeeError(ErrorCode.INTERP_FEE_CONVERSION, str(exc)) from exc


@dataclass(frozen=True)
class InterpolatedMintFees(_InterpolatedFees):
    def fee_inner(self, cr: IFix64) -> IFix64:
        if cr < self.curve.x_min():
            raise FeeError(ErrorCode.NO_VALID_STABLECOIN_MINT_FEE, f"cr {cr} below curve")
        if cr > self.curve.x_max():
            return self.curve.y_max()
        return self.curve.interpolate(cr)


@dataclass(frozen=True)
class InterpolatedRedeemFees(_InterpolatedFees):
    def fee_inner(self, cr: IFix64) -> IFix64:
        if cr < self.curve.x_min():
            return self.curve.y_min()
        if cr > self.curve.x_max():
            return self.curve.y_max()
        return self.curve.interpolate(cr)


@dataclass(frozen=True)
class CurveStablecoinFees:
    """Stablecoin fee model keyed on the projected collateral ratio."""

    mint: InterpolatedMintFees
    redeem: InterpolatedRedeemFees

    def __post_init__(self) -> None:
        self.validate()

    @classmethod
    def from_document(cls, doc: Mapping[str, Any]) -> "CurveStablecoinFees":
        return cls(
            InterpolatedMintFees(mint_curve_from_document(doc)),
            InterpolatedRedeemFees(redeem_curve_from_document(doc)),
        )

    @classmethod
    def shipped(cls) -> "CurveStablecoinFees":
        return cls.from_document(load_document("fee_curves.yaml"))

    def mint_fee_at(self, mode: StabilityMode, collateral_ratio: UFix64) -> UFix64:
        return self.mint.fee(collateral_ratio)

    def redeem_fee_at(self, mode: StabilityMode, collateral_ratio: UFix64) -> UFix64:
        return self.redeem.fee(collateral_ratio)

    def validate(self) -> None:
        """Every fee on both curves is an N5 rate in ``[0, 1)``."""
        one = UFix64.one(N5)
        for curve in (self.mint.curve, self.redeem.curve):
            if curve.exp != N5:
                raise FeeError(ErrorCode.INVALID_FEES, f"curve precision e{curve.exp}, expected e{N5}")
            for p in curve.points:
                if p.y.bits < 0 or p.y.bits >= one.bits:
                    raise FeeError(ErrorCode.INVALID_FEES, f"curve fee {p.y} outside [0, 1)")
