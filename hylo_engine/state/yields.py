"""
Staking-yield harvest.

Each epoch the yield earned by the LST vaults is minted as stablecoin. The
config decides how much of that goes to the stability pool (allocation) and
how much of the pool's share the protocol keeps (fee). The cache records the
last harvest so consumers can tell whether it is current.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..core.fee_controller import FeeExtract
from ..core.fix import N4, N6, UFix64
from ..errors import EpochError, ErrorCode, FixedPointError


@dataclass(frozen=True)
class YieldHarvestConfig:
    allocation: UFix64
    fee: UFix64

    def __post_init__(self) -> None:
        for name, v in (("allocation", self.allocation), ("fee", self.fee)):
            if not isinstance(v, UFix64) or v.exp != N4:
                raise TypeError(f"{name} must be a UFix64 at N4")

    def apply_allocation(self, stablecoin: UFix64) -> UFix64:
        """Share of harvested stablecoin routed to the stability pool, rounded down."""
        try:
            return stablecoin.mul_div_floor(self.allocation, UFix64.one(N4))
        except FixedPointError as exc:
            raise EpochError(ErrorCode.YIELD_HARVEST_ALLOCATION, str(exc)) from exc

    def apply_fee(self, stablecoin: UFix64) -> FeeExtract:
        return FeeExtract.new(self.fee, stablecoin)

    def validate(self) -> "YieldHarvestConfig":
        one = UFix64.one(N4)
        if not (
            0 < self.fee.bits <= one.bits and 0 < self.allocation.bits <= one.bits
        ):
            raise EpochError(
                ErrorCode.YIELD_HARVEST_CONFIG_VALIDATION,
                f"allocation={self.allocation} fee={self.fee}",
            )
        return self


@dataclass(frozen=True)
class YieldHarvestCache:
    epoch: int
    stability_pool_cap: UFix64 = UFix64.zero(N6)
    stablecoin_yield_to_pool: UFix64 = UFix64.zero(N6)

    def __post_init__(self) -> None:
        if not isinstance(self.epoch, int) or isinstance(self.epoch, bool):
            raise TypeError("epoch must be an int")
        for name, v in (
            ("stability_pool_cap", self.stability_pool_cap),
            ("stablecoin_yield_to_pool", self.stablecoin_yield_to_pool),
        ):
            if not isinstance(v, UFix64) or v.exp != N6:
                raise TypeError(f"{name} must be a UFix64 at N6")

    def update(
        self, stability_pool_cap: UFix64, stablecoin_yield_to_pool: UFix64, epoch: int
    ) -> "YieldHarvestCache":
        if epoch < self.epoch:
            raise EpochError(ErrorCode.EPOCH_ORDER, f"epoch {epoch} before harvest {self.epoch}")
        return YieldHarvestCache(
            epoch=epoch,
            stability_pool_cap=stability_pool_cap,
            stablecoin_yield_to_pool=stablecoin_yield_to_pool,
        )

    def is_stale(self, current_epoch: int) -> bool:
        return self.epoch != current_epoch
