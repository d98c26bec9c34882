"""
Clock abstraction.

The engine never reads wall time. Callers pass a clock carrying the chain's
slot, epoch and unix timestamp so staleness checks stay deterministic.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class Clock(Protocol):
    @property
    def slot(self) -> int: ...

    @property
    def epoch(self) -> int: ...

    @property
    def unix_timestamp(self) -> int: ...


@dataclass(frozen=True)
class FixedClock:
    """A clock frozen at one point in chain time."""

    slot: int
    epoch: int
    unix_timestamp: int

    def __post_init__(self) -> None:
        for name, v in (
            ("slot", self.slot),
            ("epoch", self.epoch),
            ("unix_timestamp", self.unix_timestamp),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.slot < 0 or self.epoch < 0:
            raise ValueError("slot and epoch must be non-negative")

    def advance(self, *, slots: int = 0, seconds: int = 0, epochs: int = 0) -> "FixedClock":
        return FixedClock(
            slot=self.slot + slots,
            epoch=self.epoch + epochs,
            unix_timestamp=self.unix_timestamp + seconds,
        )
