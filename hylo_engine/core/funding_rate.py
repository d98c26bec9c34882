"""
Per-epoch funding rate for exogenous collateral without native yield.

The rate is an N8 fraction of collateral USD value charged once per epoch,
capped at 0.0006 (roughly 10% a year at 182 epochs).
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ErrorCode, FeeError, FixedPointError
from .fix import N8, UFix64


MAX_FUNDING_RATE = UFix64(60_000, N8)


@dataclass(frozen=True)
class FundingRateConfig:
    rate: UFix64

    def __post_init__(self) -> None:
        if not isinstance(self.rate, UFix64) or self.rate.exp != N8:
            raise TypeError("rate must be a UFix64 at N8")

    def apply(self, collateral_value_usd: UFix64) -> UFix64:
        """Funding owed on ``collateral_value_usd``, at its scale, rounded down."""
        try:
            return collateral_value_usd.mul_div_floor(self.rate, UFix64.one(N8))
        except FixedPointError as exc:
            raise FeeError(ErrorCode.FUNDING_RATE_APPLY, str(exc)) from exc

    def validate(self) -> "FundingRateConfig":
        if self.rate.is_zero() or self.rate > MAX_FUNDING_RATE:
            raise FeeError(ErrorCode.FUNDING_RATE_VALIDATION, str(self.rate))
        return self
