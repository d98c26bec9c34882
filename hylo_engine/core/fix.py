"""
Scale-tagged 64-bit decimal fixed point (deterministic, integer-only).

A value is a pair ``(bits, exp)`` denoting ``bits * 10**exp``. Two families:

- ``UFix64``: bits in ``[0, 2**64 - 1]``
- ``IFix64``: bits in ``[-2**63, 2**63 - 1]``

Algorithm Design:
- Python ints are unbounded, so every operation computes the exact result and
  then checks it against the 64-bit bounds. Nothing wraps.
- The scale of a value never changes except through ``convert``. Adding,
  subtracting or comparing values of different scales is an error.
- ``mul_div_floor``/``mul_div_ceil`` compute ``a * b / c`` with a full-width
  intermediate; ``b`` and ``c`` share a scale so the result keeps ``a``'s.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import ClassVar, TypeVar

from ..errors import ErrorCode, FixedPointError


U64_MAX = (1 << 64) - 1
I64_MIN = -(1 << 63)
I64_MAX = (1 << 63) - 1

Z0 = 0
N2 = -2
N3 = -3
N4 = -4
N5 = -5
N6 = -6
N7 = -7
N8 = -8
N9 = -9

_MIN_EXP = -18

F = TypeVar("F", bound="_Fix")


def _div_trunc(num: int, den: int) -> int:
    q = abs(num) // abs(den)
    return q if (num >= 0) == (den > 0) else -q


def _pow10(n: int) -> int:
    return 10**n


@dataclass(frozen=True)
class _Fix:
    bits: int
    exp: int

    MIN_BITS: ClassVar[int] = 0
    MAX_BITS: ClassVar[int] = 0

    def __post_init__(self) -> None:
        if not isinstance(self.bits, int) or isinstance(self.bits, bool):
            raise TypeError("bits must be an int")
        if not isinstance(self.exp, int) or isinstance(self.exp, bool):
            raise TypeError("exp must be an int")
        if not (_MIN_EXP <= self.exp <= 0):
            raise ValueError(f"exp must be in [{_MIN_EXP}, 0]: {self.exp}")
        if not (self.MIN_BITS <= self.bits <= self.MAX_BITS):
            raise ValueError(
                f"{type(self).__name__} bits out of range: {self.bits}"
            )

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def one(cls: type[F], exp: int) -> F:
        return cls(_pow10(-exp), exp)

    @classmethod
    def zero(cls: type[F], exp: int) -> F:
        return cls(0, exp)

    @classmethod
    def max_value(cls: type[F], exp: int) -> F:
        return cls(cls.MAX_BITS, exp)

    @classmethod
    def _checked(cls: type[F], bits: int, exp: int) -> F:
        if bits > cls.MAX_BITS:
            raise FixedPointError(ErrorCode.ARITHMETIC_OVERFLOW, f"{bits} > {cls.MAX_BITS}")
        if bits < cls.MIN_BITS:
            raise FixedPointError(ErrorCode.ARITHMETIC_UNDERFLOW, f"{bits} < {cls.MIN_BITS}")
        return cls(bits, exp)

    def _same_scale(self, other: "_Fix") -> None:
        if type(other) is not type(self) or other.exp != self.exp:
            raise FixedPointError(
                ErrorCode.SCALE_MISMATCH,
                f"{type(self).__name__}(e{self.exp}) vs {type(other).__name__}(e{other.exp})",
            )

    # ------------------------------------------------------------------
    # Same-scale arithmetic
    # ------------------------------------------------------------------

    def checked_add(self: F, other: F) -> F:
        self._same_scale(other)
        return self._checked(self.bits + other.bits, self.exp)

    def checked_sub(self: F, other: F) -> F:
        self._same_scale(other)
        return self._checked(self.bits - other.bits, self.exp)

    def saturating_sub(self: F, other: F) -> F:
        self._same_scale(other)
        bits = max(self.MIN_BITS, min(self.MAX_BITS, self.bits - other.bits))
        return type(self)(bits, self.exp)

    def min(self: F, other: F) -> F:
        self._same_scale(other)
        return self if self.bits <= other.bits else other

    def max(self: F, other: F) -> F:
        self._same_scale(other)
        return self if self.bits >= other.bits else other

    # ------------------------------------------------------------------
    # Cross-scale arithmetic
    # ------------------------------------------------------------------

    def checked_mul(self: F, other: F) -> F:
        """Product; the result exponent is the sum of both exponents."""
        if type(other) is not type(self):
            raise FixedPointError(ErrorCode.SCALE_MISMATCH, "mixed signedness")
        exp = self.exp + other.exp
        if exp < _MIN_EXP:
            raise FixedPointError(ErrorCode.CONVERSION_OVERFLOW, f"exponent {exp}")
        return self._checked(self.bits * other.bits, exp)

    def checked_div(self: F, other: F) -> F:
        """Quotient of bits (truncated); the result exponent is ``self.exp - other.exp``."""
        if type(other) is not type(self):
            raise FixedPointError(ErrorCode.SCALE_MISMATCH, "mixed signedness")
        if other.bits == 0:
            raise FixedPointError(ErrorCode.DIVISION_BY_ZERO)
        exp = self.exp - other.exp
        if not (_MIN_EXP <= exp <= 0):
            raise FixedPointError(ErrorCode.CONVERSION_OVERFLOW, f"exponent {exp}")
        return self._checked(_div_trunc(self.bits, other.bits), exp)

    def _mul_div_parts(self, num: "_Fix", den: "_Fix") -> tuple[int, int]:
        if type(num) is not type(self) or type(den) is not type(self):
            raise FixedPointError(ErrorCode.SCALE_MISMATCH, "mixed signedness")
        if num.exp != den.exp:
            raise FixedPointError(
                ErrorCode.SCALE_MISMATCH, f"mul_div operands e{num.exp} vs e{den.exp}"
            )
        if den.bits == 0:
            raise FixedPointError(ErrorCode.DIVISION_BY_ZERO)
        return self.bits * num.bits, den.bits

    def mul_div_floor(self: F, num: F, den: F) -> F:
        """``self * num / den`` rounded toward negative infinity."""
        n, d = self._mul_div_parts(num, den)
        return self._checked(n // d, self.exp)

    def mul_div_ceil(self: F, num: F, den: F) -> F:
        """``self * num / den`` rounded toward positive infinity."""
        n, d = self._mul_div_parts(num, den)
        return self._checked(-((-n) // d), self.exp)

    def convert(self: F, exp: int) -> F:
        """Rescale to ``exp``; gaining precision is exact, losing it truncates toward zero."""
        if not (_MIN_EXP <= exp <= 0):
            raise FixedPointError(ErrorCode.CONVERSION_OVERFLOW, f"exponent {exp}")
        delta = self.exp - exp
        if delta >= 0:
            bits = self.bits * _pow10(delta)
        else:
            bits = _div_trunc(self.bits, _pow10(-delta))
        if not (self.MIN_BITS <= bits <= self.MAX_BITS):
            raise FixedPointError(
                ErrorCode.CONVERSION_OVERFLOW, f"e{self.exp} -> e{exp}: {bits}"
            )
        return type(self)(bits, exp)

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def __lt__(self, other: "_Fix") -> bool:
        self._same_scale(other)
        return self.bits < other.bits

    def __le__(self, other: "_Fix") -> bool:
        self._same_scale(other)
        return self.bits <= other.bits

    def __gt__(self, other: "_Fix") -> bool:
        self._same_scale(other)
        return self.bits > other.bits

    def __ge__(self, other: "_Fix") -> bool:
        self._same_scale(other)
        return self.bits >= other.bits

    def is_zero(self) -> bool:
        return self.bits == 0

    def __str__(self) -> str:
        if self.exp == 0:
            return str(self.bits)
        scale = -self.exp
        sign = "-" if self.bits < 0 else ""
        whole, frac = divmod(abs(self.bits), _pow10(scale))
        return f"{sign}{whole}.{frac:0{scale}d}"


@dataclass(frozen=True, eq=True)
class UFix64(_Fix):
    MIN_BITS: ClassVar[int] = 0
    MAX_BITS: ClassVar[int] = U64_MAX

    def narrow(self) -> "IFix64":
        """Reinterpret as signed; fails when the magnitude exceeds ``i64::MAX``."""
        if self.bits > I64_MAX:
            raise FixedPointError(ErrorCode.CONVERSION_OVERFLOW, f"narrow {self.bits}")
        return IFix64(self.bits, self.exp)


@dataclass(frozen=True, eq=True)
class IFix64(_Fix):
    MIN_BITS: ClassVar[int] = I64_MIN
    MAX_BITS: ClassVar[int] = I64_MAX

    def widen(self) -> UFix64:
        """Reinterpret as unsigned; fails for negative values."""
        if self.bits < 0:
            raise FixedPointError(ErrorCode.CONVERSION_OVERFLOW, f"widen {self.bits}")
        return UFix64(self.bits, self.exp)
