"""
Stability mode controller.

The protocol runs in one of four regimes, ordered by worsening collateral
ratio: Normal < Mode1 < Mode2 < Depeg. The mode is a pure function of the
current collateral ratio; there are no transition events.

    cr >= t1            -> Normal
    t2 <= cr < t1       -> Mode1
    floor <= cr < t2    -> Mode2
    cr < floor          -> Depeg
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum, unique
from typing import Optional

from ..errors import ErrorCode, StabilityError
from .fix import N2, N9, UFix64


DEFAULT_DEPEG_FLOOR = UFix64(100, N2)


@unique
class StabilityMode(IntEnum):
    NORMAL = 0
    MODE_1 = 1
    MODE_2 = 2
    DEPEG = 3

    def __str__(self) -> str:
        return {
            StabilityMode.NORMAL: "Normal",
            StabilityMode.MODE_1: "Mode1",
            StabilityMode.MODE_2: "Mode2",
            StabilityMode.DEPEG: "Depeg",
        }[self]


def worse_mode(current: StabilityMode, projected: StabilityMode) -> StabilityMode:
    """Mode used for fee selection: improving the ratio never earns a cheaper tier."""
    return projected if projected > current else current


@dataclass(frozen=True)
class StabilityController:
    stability_threshold_1: UFix64
    stability_threshold_2: UFix64
    depeg_floor: UFix64 = field(default=DEFAULT_DEPEG_FLOOR)

    def __post_init__(self) -> None:
        for name, v in (
            ("stability_threshold_1", self.stability_threshold_1),
            ("stability_threshold_2", self.stability_threshold_2),
            ("depeg_floor", self.depeg_floor),
        ):
            if not isinstance(v, UFix64) or v.exp != N2:
                raise TypeError(f"{name} must be a UFix64 at N2")
        self.validate()

    def validate(self) -> None:
        t1 = self.stability_threshold_1
        t2 = self.stability_threshold_2
        floor = self.depeg_floor
        if not (t1 > t2 and t2 > floor and floor.bits > 0):
            raise StabilityError(
                ErrorCode.STABILITY_VALIDATION,
                f"require t1 > t2 > floor > 0, got {t1}, {t2}, {floor}",
            )

    def stability_mode(self, collateral_ratio: UFix64) -> StabilityMode:
        if collateral_ratio >= self.stability_threshold_1.convert(N9):
            return StabilityMode.NORMAL
        if collateral_ratio >= self.stability_threshold_2.convert(N9):
            return StabilityMode.MODE_1
        if collateral_ratio >= self.depeg_floor.convert(N9):
            return StabilityMode.MODE_2
        return StabilityMode.DEPEG

    def prev_stability_threshold(self, mode: StabilityMode) -> Optional[UFix64]:
        """Threshold to climb back over to reach the next healthier mode."""
        return {
            StabilityMode.NORMAL: None,
            StabilityMode.MODE_1: self.stability_threshold_1,
            StabilityMode.MODE_2: self.stability_threshold_2,
            StabilityMode.DEPEG: self.depeg_floor,
        }[mode]

    def next_stability_threshold(self, mode: StabilityMode) -> Optional[UFix64]:
        """Threshold whose crossing drops the protocol into the next worse mode."""
        return {
            StabilityMode.NORMAL: self.stability_threshold_1,
            StabilityMode.MODE_1: self.stability_threshold_2,
            StabilityMode.MODE_2: self.depeg_floor,
            StabilityMode.DEPEG: None,
        }[mode]

    def min_stability_threshold(self) -> UFix64:
        return self.stability_threshold_2
