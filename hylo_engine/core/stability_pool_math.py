"""
Stability pool accounting.

The pool holds stablecoin and, after rebalancing, levercoin. LP token NAV is
the pool's USD capitalization over LP supply. Deposits mint at that NAV and
withdrawals pay out each leg pro rata.
"""

from __future__ import annotations

from ..errors import ErrorCode, StabilityPoolError, reraise_as
from .conversion import SwapConversion
from .fee_controller import FeeExtract
from .fix import N3, N6, N9, UFix64
from .oracle import PriceRange


def stability_pool_cap(
    stablecoin_nav: UFix64,
    stablecoin_in_pool: UFix64,
    levercoin_nav: UFix64,
    levercoin_in_pool: UFix64,
) -> UFix64:
    """USD value of both legs at N6."""
    with reraise_as(StabilityPoolError, ErrorCode.STABILITY_POOL_CAP):
        stable_cap = stablecoin_in_pool.mul_div_ceil(stablecoin_nav, UFix64.one(N9))
        lever_cap = levercoin_in_pool.mul_div_ceil(levercoin_nav, UFix64.one(N9))
        return stable_cap.checked_add(lever_cap)


def lp_token_nav(
    stablecoin_nav: UFix64,
    stablecoin_in_pool: UFix64,
    levercoin_nav: UFix64,
    levercoin_in_pool: UFix64,
    lp_token_supply: UFix64,
) -> UFix64:
    if lp_token_supply.is_zero():
        return UFix64.one(N6)
    total_cap = stability_pool_cap(stablecoin_nav, stablecoin_in_pool, levercoin_nav, levercoin_in_pool)
    with reraise_as(StabilityPoolError, ErrorCode.LP_TOKEN_NAV):
        return total_cap.mul_div_ceil(UFix64.one(N6), lp_token_supply)


def lp_token_out(amount_stablecoin_in: UFix64, lp_token_nav: UFix64) -> UFix64:
    with reraise_as(StabilityPoolError, ErrorCode.LP_TOKEN_OUT):
        return amount_stablecoin_in.mul_div_floor(UFix64.one(N6), lp_token_nav)


def amount_token_to_withdraw(
    user_lp_token_amount: UFix64,
    lp_token_supply: UFix64,
    pool_amount: UFix64,
) -> UFix64:
    """The holder's pro-rata share of one pool leg."""
    with reraise_as(StabilityPoolError, ErrorCode.TOKEN_WITHDRAW):
        return user_lp_token_amount.mul_div_floor(pool_amount, lp_token_supply)


def amount_stable_to_swap(
    stablecoin_in_pool: UFix64,
    target_stability_threshold: UFix64,
    current_stablecoin_supply: UFix64,
    total_value_locked: UFix64,
) -> UFix64:
    """
    Stablecoin the pool must swap into levercoin to lift the ratio back to the
    target, capped by what the pool holds.
    """
    with reraise_as(StabilityPoolError, ErrorCode.STABLECOIN_TO_SWAP):
        # N9 / N3 -> N6
        target_supply = total_value_locked.checked_div(target_stability_threshold.convert(N3))
        to_swap = current_stablecoin_supply.checked_sub(target_supply)
    return to_swap.min(stablecoin_in_pool)


def amount_lever_to_swap(
    levercoin_in_pool: UFix64,
    levercoin_nav: PriceRange,
    max_swappable_stablecoin: UFix64,
) -> UFix64:
    """Levercoin the pool can swap back into stablecoin without crossing the swap limit."""
    conversion = SwapConversion(UFix64.one(N9), levercoin_nav)
    target_stablecoin = conversion.lever_to_stable(levercoin_in_pool)
    if target_stablecoin <= max_swappable_stablecoin:
        return levercoin_in_pool
    return conversion.stable_to_lever(max_swappable_stablecoin)


def stablecoin_withdrawal_fee(
    stablecoin_in_pool: UFix64,
    stablecoin_to_withdraw: UFix64,
    stablecoin_nav: UFix64,
    levercoin_to_withdraw: UFix64,
    levercoin_nav: UFix64,
    withdrawal_fee: UFix64,
) -> FeeExtract:
    """
    Fee on the USD value of the whole withdrawal, taken from the stablecoin
    leg only and never more than the stablecoin in the pool.
    """
    allocation_cap = stability_pool_cap(
        stablecoin_nav, stablecoin_to_withdraw, levercoin_nav, levercoin_to_withdraw
    )
    proposed = FeeExtract.new(withdrawal_fee, allocation_cap).fees_extracted
    fees_extracted = proposed.min(stablecoin_in_pool)
    amount_remaining = stablecoin_to_withdraw.saturating_sub(fees_extracted)
    return FeeExtract(fees_extracted=fees_extracted, amount_remaining=amount_remaining)
