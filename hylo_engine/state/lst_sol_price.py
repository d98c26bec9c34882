"""
Per-epoch LST exchange rate into SOL.

A staking token's rate only moves once per epoch and only by staking yield,
so a large jump between consecutive epochs signals a corrupted or
manipulated input. ``validate_update`` bounds that jump.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from ..core.fix import N9, UFix64
from ..errors import EpochError, ErrorCode, FixedPointError


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LstSolPrice:
    price: UFix64
    epoch: int

    def __post_init__(self) -> None:
        if not isinstance(self.price, UFix64) or self.price.exp != N9:
            raise TypeError("price must be a UFix64 at N9")
        if not isinstance(self.epoch, int) or isinstance(self.epoch, bool):
            raise TypeError("epoch must be an int")
        if self.epoch < 0:
            raise ValueError(f"epoch must be non-negative: {self.epoch}")

    def checked_delta(self, prev: "LstSolPrice") -> UFix64:
        """Price growth since ``prev``; the epoch must advance and the price must not fall."""
        if self.epoch <= prev.epoch:
            raise EpochError(
                ErrorCode.LST_SOL_PRICE_EPOCH_ORDER, f"epoch {self.epoch} after {prev.epoch}"
            )
        try:
            return self.price.checked_sub(prev.price)
        except FixedPointError as exc:
            raise EpochError(ErrorCode.LST_SOL_PRICE_DELTA, str(exc)) from exc

    def validate_update(self, prev: "LstSolPrice", max_relative_delta: UFix64) -> UFix64:
        """``checked_delta`` plus a cap on ``delta / prev.price`` (N9)."""
        delta = self.checked_delta(prev)
        try:
            relative = delta.mul_div_ceil(UFix64.one(N9), prev.price)
        except FixedPointError as exc:
            raise EpochError(ErrorCode.LST_SOL_PRICE_DELTA, str(exc)) from exc
        if relative > max_relative_delta:
            logger.warning(
                "rejecting LST price jump %s -> %s (relative %s > %s)",
                prev.price,
                self.price,
                relative,
                max_relative_delta,
            )
            raise EpochError(ErrorCode.LST_SOL_PRICE_DELTA, f"relative delta {relative}")
        return delta

    def get_epoch_price(self, current_epoch: int, max_age: int = 0) -> UFix64:
        if not (0 <= current_epoch - self.epoch <= max_age):
            raise EpochError(
                ErrorCode.LST_SOL_PRICE_OUTDATED, f"price epoch {self.epoch}, current {current_epoch}"
            )
        return self.price

    def is_stale(self, current_epoch: int, max_age: int = 0) -> bool:
        return not (0 <= current_epoch - self.epoch <= max_age)

    def convert_sol(self, amount_lst: UFix64, current_epoch: int, max_age: int = 0) -> UFix64:
        price = self.get_epoch_price(current_epoch, max_age)
        try:
            return price.mul_div_floor(amount_lst, UFix64.one(N9))
        except FixedPointError as exc:
            raise EpochError(ErrorCode.LST_SOL_PRICE_CONVERSION, str(exc)) from exc

    def convert_lst_amount(
        self,
        current_epoch: int,
        amount_lst: UFix64,
        other: "LstSolPrice",
        max_age: int = 0,
    ) -> UFix64:
        """This LST into ``other`` through their SOL prices, rounded down."""
        in_price = self.get_epoch_price(current_epoch, max_age)
        out_price = other.get_epoch_price(current_epoch, max_age)
        try:
            return amount_lst.mul_div_floor(in_price, out_price)
        except FixedPointError as exc:
            raise EpochError(ErrorCode.LST_LST_PRICE_CONVERSION, str(exc)) from exc
