"""
Epoch-validated cache of total collateral held across every LST vault.

Immutable: each mutation returns a new cache.

- mutations accept the stored epoch or a later one; an older epoch is an
  ordering bug (``EPOCH_ORDER``), not stale data
- ``increment``/``decrement`` keep the stored epoch, so a cache touched in a
  later epoch still reads as outdated until ``set`` refreshes it
- reads require the current epoch to equal the stored one
"""

from __future__ import annotations

from dataclasses import dataclass, replace

from ..core.fix import N9, UFix64
from ..errors import EpochError, ErrorCode, FixedPointError


@dataclass(frozen=True)
class TotalSolCache:
    current_update_epoch: int
    total_sol: UFix64 = UFix64.zero(N9)

    def __post_init__(self) -> None:
        if not isinstance(self.current_update_epoch, int) or isinstance(self.current_update_epoch, bool):
            raise TypeError("current_update_epoch must be an int")
        if self.current_update_epoch < 0:
            raise ValueError(f"current_update_epoch must be non-negative: {self.current_update_epoch}")
        if not isinstance(self.total_sol, UFix64) or self.total_sol.exp != N9:
            raise TypeError("total_sol must be a UFix64 at N9")

    def _check_epoch(self, epoch: int) -> None:
        if epoch < self.current_update_epoch:
            raise EpochError(
                ErrorCode.EPOCH_ORDER, f"epoch {epoch} before cached {self.current_update_epoch}"
            )

    def increment(self, sol_in: UFix64, epoch: int) -> "TotalSolCache":
        self._check_epoch(epoch)
        try:
            total = self.total_sol.checked_add(sol_in)
        except FixedPointError as exc:
            raise EpochError(ErrorCode.TOTAL_SOL_CACHE_OVERFLOW, str(exc)) from exc
        return replace(self, total_sol=total)

    def decrement(self, sol_out: UFix64, epoch: int) -> "TotalSolCache":
        self._check_epoch(epoch)
        try:
            total = self.total_sol.checked_sub(sol_out)
        except FixedPointError as exc:
            raise EpochError(ErrorCode.TOTAL_SOL_CACHE_UNDERFLOW, str(exc)) from exc
        return replace(self, total_sol=total)

    def set(self, total_sol: UFix64, epoch: int) -> "TotalSolCache":
        """Reset the total and advance the epoch (the epoch price update)."""
        self._check_epoch(epoch)
        return TotalSolCache(current_update_epoch=epoch, total_sol=total_sol)

    def get_validated(self, epoch: int) -> UFix64:
        if epoch != self.current_update_epoch:
            raise EpochError(
                ErrorCode.TOTAL_SOL_CACHE_OUTDATED,
                f"cached at {self.current_update_epoch}, requested {epoch}",
            )
        return self.total_sol
