"""Supply counter for a stablecoin minted against one exogenous collateral."""

from __future__ import annotations

from dataclasses import dataclass

from ..core.fix import N6, UFix64
from ..errors import EpochError, ErrorCode, FixedPointError


@dataclass(frozen=True)
class VirtualStablecoin:
    supply: UFix64 = UFix64.zero(N6)

    def __post_init__(self) -> None:
        if not isinstance(self.supply, UFix64) or self.supply.exp != N6:
            raise TypeError("supply must be a UFix64 at N6")

    def mint(self, amount: UFix64) -> "VirtualStablecoin":
        if amount.is_zero():
            raise EpochError(ErrorCode.MINT_ZERO)
        try:
            return VirtualStablecoin(self.supply.checked_add(amount))
        except FixedPointError as exc:
            raise EpochError(ErrorCode.MINT_OVERFLOW, str(exc)) from exc

    def burn(self, amount: UFix64) -> "VirtualStablecoin":
        if amount.is_zero():
            raise EpochError(ErrorCode.BURN_ZERO)
        try:
            return VirtualStablecoin(self.supply.checked_sub(amount))
        except FixedPointError as exc:
            raise EpochError(ErrorCode.BURN_UNDERFLOW, str(exc)) from exc
