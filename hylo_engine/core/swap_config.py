"""
Flat swap fees.

``LstSwapConfig`` prices LST to LST swaps; ``AssetSwapConfig`` prices swaps
between exogenous collateral assets. Both hold a single N4 fee that must be
strictly between zero and one.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ErrorCode, FeeError
from .fee_controller import FeeExtract
from .fix import N4, UFix64


def validate_swap_fee(fee: UFix64) -> None:
    if not (fee.bits > 0 and fee < UFix64.one(N4)):
        raise FeeError(ErrorCode.INVALID_FEES, f"swap fee {fee}")


@dataclass(frozen=True)
class LstSwapConfig:
    fee: UFix64

    def __post_init__(self) -> None:
        if not isinstance(self.fee, UFix64) or self.fee.exp != N4:
            raise TypeError("fee must be a UFix64 at N4")

    def update(self, new_fee: UFix64) -> "LstSwapConfig":
        updated = LstSwapConfig(new_fee)
        updated.validate()
        return updated

    def apply_swap_fee(self, amount: UFix64) -> FeeExtract:
        return FeeExtract.new(self.fee, amount)

    def validate(self) -> None:
        validate_swap_fee(self.fee)


@dataclass(frozen=True)
class AssetSwapConfig:
    """Validated on construction, unlike the stored LST config."""

    fee: UFix64

    def __post_init__(self) -> None:
        if not isinstance(self.fee, UFix64) or self.fee.exp != N4:
            raise TypeError("fee must be a UFix64 at N4")
        validate_swap_fee(self.fee)

    def apply_fee(self, amount: UFix64) -> FeeExtract:
        return FeeExtract.new(self.fee, amount)
