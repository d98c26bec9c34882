"""
Piecewise-linear interpolation over fixed-point points.

Points are validated at construction (strictly increasing x) and lookups
outside ``[x_min, x_max]`` fail instead of extrapolating. Callers that want
flat tails (fee curves, rebalance curves) clamp explicitly before calling
``interpolate``.
"""

from __future__ import annotations

from bisect import bisect_left
from dataclasses import dataclass
from typing import Iterable, Sequence

from ..errors import ErrorCode, FixedPointError, InterpolationError
from .fix import IFix64


@dataclass(frozen=True)
class Point:
    x: IFix64
    y: IFix64

    @classmethod
    def from_ints(cls, x: int, y: int, exp: int) -> "Point":
        return cls(IFix64(x, exp), IFix64(y, exp))

    def lerp_to(self, other: "Point", x: IFix64) -> IFix64:
        """Value at ``x`` on the segment from this point to ``other``, rounded up."""
        dy = other.y.checked_sub(self.y)
        return self.y.checked_add(
            dy.mul_div_ceil(x.checked_sub(self.x), other.x.checked_sub(self.x))
        )


@dataclass(frozen=True)
class FixInterp:
    points: tuple[Point, ...]

    def __post_init__(self) -> None:
        if len(self.points) < 2:
            raise InterpolationError(ErrorCode.INTERP_INSUFFICIENT_POINTS, str(len(self.points)))
        for p in self.points:
            if not isinstance(p, Point):
                raise TypeError("points must be Point instances")
        exp = self.points[0].x.exp
        for p in self.points:
            if p.x.exp != exp or p.y.exp != exp:
                raise InterpolationError(ErrorCode.SCALE_MISMATCH, "mixed scales")
        for a, b in zip(self.points, self.points[1:]):
            if not a.x.bits < b.x.bits:
                raise InterpolationError(
                    ErrorCode.INTERP_POINTS_NOT_MONOTONIC, f"x={a.x.bits} then x={b.x.bits}"
                )

    @classmethod
    def from_points(cls, points: Iterable[Point]) -> "FixInterp":
        return cls(tuple(points))

    @classmethod
    def from_values(cls, values: Sequence[tuple[int, int]], exp: int) -> "FixInterp":
        return cls(tuple(Point.from_ints(x, y, exp) for x, y in values))

    @property
    def exp(self) -> int:
        return self.points[0].x.exp

    def x_min(self) -> IFix64:
        return self.points[0].x

    def x_max(self) -> IFix64:
        return self.points[-1].x

    def y_min(self) -> IFix64:
        return self.points[0].y

    def y_max(self) -> IFix64:
        return self.points[-1].y

    def interpolate(self, x: IFix64) -> IFix64:
        if x.exp != self.exp:
            raise InterpolationError(ErrorCode.INTERP_OUT_OF_DOMAIN, f"scale e{x.exp}")
        if x < self.x_min() or x > self.x_max():
            raise InterpolationError(
                ErrorCode.INTERP_OUT_OF_DOMAIN,
                f"{x} outside [{self.x_min()}, {self.x_max()}]",
            )
        xs = [p.x.bits for p in self.points]
        part = max(1, bisect_left(xs, x.bits))
        try:
            return self.points[part - 1].lerp_to(self.points[part], x)
        except FixedPointError as exc:
            raise InterpolationError(ErrorCode.INTERP_ARITHMETIC, str(exc)) from exc
