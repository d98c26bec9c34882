"""
Rebalance sizing against collateral.

How much collateral the protocol may sell (ratio below target) or buy (ratio
above target) for stablecoin-equivalent value so that the ratio lands on the
target. Both return ``None`` when the protocol sits on the other side of the
target, or the arithmetic does not fit.
"""

from __future__ import annotations

from typing import Optional

from ..errors import FixedPointError
from .fix import N9, UFix64


def max_sellable_collateral(
    target_cr: UFix64,
    virtual_stablecoin: UFix64,
    collateral_usd_price: UFix64,
    total_collateral: UFix64,
) -> Optional[UFix64]:
    """``(target * supply - price * total) / (price * (target - 1))``"""
    try:
        target = target_cr.convert(N9)
        supply = virtual_stablecoin.convert(N9)
        one = UFix64.one(N9)
        num = target.mul_div_floor(supply, one).checked_sub(
            collateral_usd_price.mul_div_ceil(total_collateral, one)
        )
        denom = collateral_usd_price.mul_div_ceil(target.checked_sub(one), one)
        return num.mul_div_floor(one, denom)
    except FixedPointError:
        return None


def max_buyable_collateral(
    target_cr: UFix64,
    virtual_stablecoin: UFix64,
    collateral_usd_price: UFix64,
    total_collateral: UFix64,
) -> Optional[UFix64]:
    """``(price * total - target * supply) / (price * (target - 1))``"""
    try:
        target = target_cr.convert(N9)
        supply = virtual_stablecoin.convert(N9)
        one = UFix64.one(N9)
        num = collateral_usd_price.mul_div_floor(total_collateral, one).checked_sub(
            target.mul_div_ceil(supply, one)
        )
        denom = collateral_usd_price.mul_div_ceil(target.checked_sub(one), one)
        return num.mul_div_floor(one, denom)
    except FixedPointError:
        return None
