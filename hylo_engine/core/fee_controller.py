"""
Fee controllers (deterministic, integer-only).

Two families back the protocol's fees:

- table-based: a fixed mint/redeem pair per stability mode (this module)
- curve-based: a continuous fee as a function of collateral ratio
  (``interpolated_fees``)

Both satisfy ``StablecoinFeeModel`` so an exchange context can be built with
either one. ``FeeExtract`` splits an amount into the fee and the remainder
with no rounding leakage: ``fees_extracted + amount_remaining == amount_in``.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from ..errors import ErrorCode, FeeError, FixedPointError
from .fix import N4, UFix64
from .stability_mode import StabilityMode


def _require_fee(value: UFix64, name: str) -> None:
    if not isinstance(value, UFix64) or value.exp != N4:
        raise TypeError(f"{name} must be a UFix64 at N4")


@dataclass(frozen=True)
class FeeExtract:
    fees_extracted: UFix64
    amount_remaining: UFix64

    @classmethod
    def new(cls, fee: UFix64, amount_in: UFix64) -> "FeeExtract":
        """Round the fee up, leave the remainder to the user."""
        try:
            fees_extracted = amount_in.mul_div_ceil(fee, UFix64.one(fee.exp))
            amount_remaining = amount_in.checked_sub(fees_extracted)
        except FixedPointError as exc:
            raise FeeError(ErrorCode.FEE_EXTRACTION, str(exc)) from exc
        return cls(fees_extracted=fees_extracted, amount_remaining=amount_remaining)

    @classmethod
    def zero(cls, amount_in: UFix64) -> "FeeExtract":
        return cls(fees_extracted=UFix64.zero(amount_in.exp), amount_remaining=amount_in)


@dataclass(frozen=True)
class FeePair:
    mint: UFix64
    redeem: UFix64

    def __post_init__(self) -> None:
        _require_fee(self.mint, "mint")
        _require_fee(self.redeem, "redeem")

    @classmethod
    def from_bps(cls, mint: int, redeem: int) -> "FeePair":
        return cls(UFix64(mint, N4), UFix64(redeem, N4))

    def validate(self) -> None:
        one = UFix64.one(N4)
        if not (self.mint < one and self.redeem < one):
            raise FeeError(ErrorCode.INVALID_FEES, f"mint={self.mint} redeem={self.redeem}")


class FeeController(Protocol):
    def mint_fee(self, mode: StabilityMode) -> UFix64: ...

    def redeem_fee(self, mode: StabilityMode) -> UFix64: ...

    def validate(self) -> None: ...


class StablecoinFeeModel(Protocol):
    """Stablecoin fee capability shared by the table and curve controllers.

    Callers pass both the fee-selection mode and the projected collateral
    ratio; each implementation reads the one it is keyed on.
    """

    def mint_fee_at(self, mode: StabilityMode, collateral_ratio: UFix64) -> UFix64: ...

    def redeem_fee_at(self, mode: StabilityMode, collateral_ratio: UFix64) -> UFix64: ...


@dataclass(frozen=True)
class StablecoinFees:
    normal: FeePair
    mode_1: FeePair

    def mint_fee(self, mode: StabilityMode) -> UFix64:
        if mode is StabilityMode.NORMAL:
            return self.normal.mint
        if mode is StabilityMode.MODE_1:
            return self.mode_1.mint
        raise FeeError(ErrorCode.NO_VALID_STABLECOIN_MINT_FEE, str(mode))

    def redeem_fee(self, mode: StabilityMode) -> UFix64:
        if mode is StabilityMode.NORMAL:
            return self.normal.redeem
        if mode is StabilityMode.MODE_1:
            return self.mode_1.redeem
        return UFix64.zero(N4)

    def mint_fee_at(self, mode: StabilityMode, collateral_ratio: UFix64) -> UFix64:
        return self.mint_fee(mode)

    def redeem_fee_at(self, mode: StabilityMode, collateral_ratio: UFix64) -> UFix64:
        return self.redeem_fee(mode)

    def validate(self) -> None:
        self.normal.validate()
        self.mode_1.validate()


@dataclass(frozen=True)
class LevercoinFees:
    normal: FeePair
    mode_1: FeePair
    mode_2: FeePair

    def _pair(self, mode: StabilityMode) -> FeePair | None:
        return {
            StabilityMode.NORMAL: self.normal,
            StabilityMode.MODE_1: self.mode_1,
            StabilityMode.MODE_2: self.mode_2,
        }.get(mode)

    def mint_fee(self, mode: StabilityMode) -> UFix64:
        pair = self._pair(mode)
        if pair is None:
            raise FeeError(ErrorCode.NO_VALID_LEVERCOIN_MINT_FEE, str(mode))
        return pair.mint

    def redeem_fee(self, mode: StabilityMode) -> UFix64:
        pair = self._pair(mode)
        if pair is None:
            raise FeeError(ErrorCode.NO_VALID_LEVERCOIN_REDEEM_FEE, str(mode))
        return pair.redeem

    def swap_to_stablecoin_fee(self, mode: StabilityMode) -> UFix64:
        """Levercoin to stablecoin swaps pay the levercoin redeem rate."""
        if mode is StabilityMode.NORMAL:
            return self.normal.redeem
        if mode is StabilityMode.MODE_1:
            return self.mode_1.redeem
        raise FeeError(ErrorCode.NO_VALID_SWAP_FEE, str(mode))

    def swap_from_stablecoin_fee(self, mode: StabilityMode) -> UFix64:
        """Stablecoin to levercoin swaps pay the levercoin mint rate."""
        pair = self._pair(mode)
        if pair is None:
            raise FeeError(ErrorCode.NO_VALID_SWAP_FEE, str(mode))
        return pair.mint

    def validate(self) -> None:
        self.normal.validate()
        self.mode_1.validate()
        self.mode_2.validate()
