"""
Token <-> collateral conversions.

Collateral entering the protocol is valued at the lower USD price and
collateral leaving it at the upper price, so every conversion rounds against
the user.
"""

from __future__ import annotations

from dataclasses import dataclass

from ..errors import ErrorCode, ExchangeMathError, reraise_as
from .fix import N6, N9, UFix64
from .oracle import PriceRange


@dataclass(frozen=True)
class Conversion:
    """LST collateral conversions: LST -> SOL via the LST price, SOL -> USD via the oracle."""

    usd_sol_price: PriceRange
    lst_sol_price: UFix64

    def lst_to_token(self, amount_lst: UFix64, token_nav: UFix64) -> UFix64:
        with reraise_as(ExchangeMathError, ErrorCode.LST_TO_TOKEN):
            sol = amount_lst.mul_div_floor(self.lst_sol_price, UFix64.one(N9))
            return sol.mul_div_floor(self.usd_sol_price.lower.convert(N9), token_nav).convert(N6)

    def token_to_lst(self, amount_token: UFix64, token_nav: UFix64) -> UFix64:
        with reraise_as(ExchangeMathError, ErrorCode.TOKEN_TO_LST):
            sol = amount_token.convert(N9).mul_div_floor(token_nav, self.usd_sol_price.upper.convert(N9))
            return sol.mul_div_floor(UFix64.one(N9), self.lst_sol_price)


@dataclass(frozen=True)
class SwapConversion:
    """Stablecoin <-> levercoin at their NAVs; the levercoin side uses its bid/ask bracket."""

    stablecoin_nav: UFix64
    levercoin_nav: PriceRange

    def stable_to_lever(self, amount_stable: UFix64) -> UFix64:
        with reraise_as(ExchangeMathError, ErrorCode.STABLE_TO_LEVER):
            usd = amount_stable.mul_div_floor(self.stablecoin_nav, UFix64.one(N9))
            return usd.mul_div_floor(UFix64.one(N9), self.levercoin_nav.upper)

    def lever_to_stable(self, amount_lever: UFix64) -> UFix64:
        with reraise_as(ExchangeMathError, ErrorCode.LEVER_TO_STABLE):
            usd = amount_lever.mul_div_floor(self.levercoin_nav.lower, UFix64.one(N9))
            return usd.mul_div_floor(UFix64.one(N9), self.stablecoin_nav)


@dataclass(frozen=True)
class ExoConversion:
    """Exogenous collateral priced directly in USD (amounts normalized to N9)."""

    collateral_usd_price: PriceRange

    def exo_to_token(self, amount_exo: UFix64, token_nav: UFix64) -> UFix64:
        with reraise_as(ExchangeMathError, ErrorCode.EXO_TO_TOKEN):
            usd = amount_exo.mul_div_floor(self.collateral_usd_price.lower.convert(N9), token_nav)
            return usd.convert(N6)

    def token_to_exo(self, amount_token: UFix64, token_nav: UFix64) -> UFix64:
        with reraise_as(ExchangeMathError, ErrorCode.TOKEN_TO_EXO):
            return amount_token.convert(N9).mul_div_floor(
                token_nav, self.collateral_usd_price.upper.convert(N9)
            )
