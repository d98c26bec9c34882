"""
Exchange math (pure formulas, no hidden state).

Precisions:
- collateral totals, collateral ratio, TVL: N9
- USD collateral price: N8
- token supplies: N6
- NAVs: N9
- stability thresholds / target ratios: N2

Rounding always favours the protocol: collateral value rounds down, liabilities
round up.
"""

from __future__ import annotations

from ..errors import ErrorCode, ExchangeMathError, reraise_as
from .fix import N2, N6, N7, N8, N9, UFix64
from .oracle import PriceRange


def collateral_ratio(total_sol: UFix64, usd_sol_price: UFix64, amount_stablecoin: UFix64) -> UFix64:
    """Collateral value over stablecoin supply; a zero supply is the largest representable ratio."""
    if amount_stablecoin.is_zero():
        return UFix64.max_value(N9)
    with reraise_as(ExchangeMathError, ErrorCode.COLLATERAL_RATIO):
        return total_sol.mul_div_floor(usd_sol_price, amount_stablecoin.convert(N8))


def total_value_locked(total_sol: UFix64, usd_sol_price: UFix64) -> UFix64:
    with reraise_as(ExchangeMathError, ErrorCode.TOTAL_VALUE_LOCKED):
        return total_sol.mul_div_floor(usd_sol_price, UFix64.one(N8))


def max_mintable_stablecoin(
    target_collateral_ratio: UFix64,
    total_sol: UFix64,
    usd_sol_price: UFix64,
    stablecoin_supply: UFix64,
) -> UFix64:
    """
    Stablecoin that can be minted before the ratio falls to the target.

    ``(tvl - target * supply) / (target - 1)``
    """
    if not target_collateral_ratio > UFix64.one(N2):
        raise ExchangeMathError(
            ErrorCode.TARGET_COLLATERAL_RATIO_TOO_LOW, str(target_collateral_ratio)
        )
    with reraise_as(ExchangeMathError, ErrorCode.MAX_MINTABLE):
        target_supply = stablecoin_supply.mul_div_ceil(target_collateral_ratio, UFix64.one(N2))
        tvl = total_sol.mul_div_floor(usd_sol_price, UFix64.one(N8))
        numerator = tvl.checked_sub(target_supply.convert(N9))
        denominator = target_collateral_ratio.checked_sub(UFix64.one(N2))
        return numerator.checked_div(denominator).convert(N6)


def max_swappable_stablecoin(
    target_collateral_ratio: UFix64,
    total_value_locked: UFix64,
    stablecoin_supply: UFix64,
) -> UFix64:
    """Stablecoin that levercoin can be swapped into before the ratio reaches the target."""
    with reraise_as(ExchangeMathError, ErrorCode.MAX_SWAPPABLE):
        limit = total_value_locked.checked_div(target_collateral_ratio)
        return limit.checked_sub(stablecoin_supply.convert(N7)).convert(N6)


def next_levercoin_nav(
    total_sol: UFix64,
    usd_sol_price: UFix64,
    stablecoin_supply: UFix64,
    stablecoin_nav: UFix64,
    levercoin_supply: UFix64,
) -> UFix64:
    """Collateral value left after the stablecoin liability, per levercoin."""
    if levercoin_supply.is_zero():
        return UFix64.one(N9)
    with reraise_as(ExchangeMathError, ErrorCode.LEVERCOIN_NAV):
        collateral_value = total_sol.mul_div_floor(usd_sol_price, UFix64.one(N8))
        stablecoin_value = stablecoin_supply.convert(N9).mul_div_ceil(stablecoin_nav, UFix64.one(N9))
        free_collateral = collateral_value.checked_sub(stablecoin_value)
        return free_collateral.mul_div_ceil(UFix64.one(N6), levercoin_supply)


def next_levercoin_mint_nav(
    total_sol: UFix64,
    usd_sol_price: PriceRange,
    stablecoin_supply: UFix64,
    stablecoin_nav: UFix64,
    levercoin_supply: UFix64,
) -> UFix64:
    """Upper NAV bound, charged to levercoin buyers."""
    return next_levercoin_nav(
        total_sol, usd_sol_price.upper, stablecoin_supply, stablecoin_nav, levercoin_supply
    )


def next_levercoin_redeem_nav(
    total_sol: UFix64,
    usd_sol_price: PriceRange,
    stablecoin_supply: UFix64,
    stablecoin_nav: UFix64,
    levercoin_supply: UFix64,
) -> UFix64:
    """Lower NAV bound, paid to levercoin sellers."""
    return next_levercoin_nav(
        total_sol, usd_sol_price.lower, stablecoin_supply, stablecoin_nav, levercoin_supply
    )


def depeg_stablecoin_nav(total_sol: UFix64, usd_sol_price: UFix64, stablecoin_supply: UFix64) -> UFix64:
    """Stablecoin NAV once the peg is broken: collateral value per stablecoin."""
    with reraise_as(ExchangeMathError, ErrorCode.STABLECOIN_NAV):
        return total_sol.mul_div_floor(usd_sol_price.convert(N9), stablecoin_supply.convert(N9))
