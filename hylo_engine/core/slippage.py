"""Client-side slippage guard: expected output paired with a tolerance."""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ErrorCode, FixedPointError, SlippageError
from .fix import N4, UFix64


@dataclass(frozen=True)
class SlippageConfig:
    expected_token_out: UFix64
    slippage_tolerance: UFix64

    def __post_init__(self) -> None:
        if not isinstance(self.expected_token_out, UFix64):
            raise TypeError("expected_token_out must be a UFix64")
        if not isinstance(self.slippage_tolerance, UFix64) or self.slippage_tolerance.exp != N4:
            raise TypeError("slippage_tolerance must be a UFix64 at N4")

    @classmethod
    def from_bps(cls, expected_token_out: UFix64, tolerance_bps: int) -> "SlippageConfig":
        return cls(expected_token_out, UFix64(tolerance_bps, N4))

    def tolerable_amount(self) -> UFix64:
        """Lowest acceptable output: ``expected * (1 - tolerance)``, rounded down."""
        one = UFix64.one(N4)
        try:
            factor = one.checked_sub(self.slippage_tolerance)
            return self.expected_token_out.mul_div_floor(factor, one)
        except FixedPointError as exc:
            raise SlippageError(ErrorCode.SLIPPAGE_ARITHMETIC, str(exc)) from exc

    def validate_token_out(self, token_out: UFix64) -> None:
        tolerable = self.tolerable_amount()
        if token_out.exp != tolerable.exp:
            raise SlippageError(
                ErrorCode.SLIPPAGE_ARITHMETIC, f"output at e{token_out.exp}, expected e{tolerable.exp}"
            )
        if token_out < tolerable:
            raise SlippageError(ErrorCode.SLIPPAGE_EXCEEDED, f"{token_out} < {tolerable}")
