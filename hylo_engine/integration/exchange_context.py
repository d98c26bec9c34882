"""
Exchange contexts: the per-quote view of one collateral family.

A context is built once per quote request from the snapshot (validated cache
total, oracle bracket, supplies) and never mutated. Everything the token
operations need is derived from it:

- TVL, stablecoin NAV and the levercoin mint/redeem NAV bracket
- the current and projected stability mode
- stablecoin fees (through a ``StablecoinFeeModel``) and levercoin fees
- the mint and swap limits against the lowest healthy threshold

``LstExchangeContext`` values collateral as SOL held in liquid staking
tokens; ``ExoExchangeContext`` values a single exogenous asset directly in
USD and backs a virtual stablecoin supply.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..config import EngineConfig
from ..core.clock import Clock
from ..core.conversion import Conversion, ExoConversion, SwapConversion
from ..core.exchange_math import (
    collateral_ratio,
    depeg_stablecoin_nav,
    max_mintable_stablecoin,
    max_swappable_stablecoin,
    next_levercoin_mint_nav,
    next_levercoin_redeem_nav,
    total_value_locked,
)
from ..core.fee_controller import FeeExtract, LevercoinFees, StablecoinFeeModel
from ..core.fee_curves import redeem_fee_curve
from ..core.fix import N8, N9, UFix64
from ..core.interpolated_fees import CurveStablecoinFees, InterpolatedRedeemFees
from ..core.oracle import PriceRange, PriceSource
from ..core.stability_mode import StabilityController, StabilityMode, worse_mode
from ..core.stability_pool_math import stability_pool_cap
from ..errors import ErrorCode, ExchangeMathError, FixedPointError, StabilityError
from ..state.lst_sol_price import LstSolPrice
from ..state.total_sol_cache import TotalSolCache
from ..state.virtual_stablecoin import VirtualStablecoin


logger = logging.getLogger(__name__)


def check_threshold_alignment(controller: StabilityController) -> None:
    """Warn when the configured Mode2 boundary and the redeem curve's floor diverge."""
    curve_floor = InterpolatedRedeemFees(redeem_fee_curve()).cr_floor()
    if controller.stability_threshold_2 != curve_floor:
        logger.warning(
            "stability threshold 2 (%s) differs from the redeem fee curve floor (%s)",
            controller.stability_threshold_2,
            curve_floor,
        )
    if controller.depeg_floor >= curve_floor:
        logger.warning(
            "depeg floor (%s) is not below the redeem fee curve floor (%s)",
            controller.depeg_floor,
            curve_floor,
        )


def _checked(code: ErrorCode, op, *args) -> UFix64:
    try:
        return op(*args)
    except FixedPointError as exc:
        raise ExchangeMathError(code, str(exc)) from exc


@dataclass(frozen=True)
class ExchangeContext:
    clock: Clock
    total_collateral: UFix64
    collateral_usd_price: PriceRange
    stablecoin_supply: UFix64
    levercoin_supply: Optional[UFix64]
    collateral_ratio: UFix64
    stability_controller: StabilityController
    stability_mode: StabilityMode
    stablecoin_fees: StablecoinFeeModel
    levercoin_fees: LevercoinFees

    # ------------------------------------------------------------------
    # NAVs and aggregates
    # ------------------------------------------------------------------

    def total_value_locked(self) -> UFix64:
        return total_value_locked(self.total_collateral, self.collateral_usd_price.lower)

    def stablecoin_nav(self) -> UFix64:
        if self.stability_mode is StabilityMode.DEPEG:
            return depeg_stablecoin_nav(
                self.total_collateral, self.collateral_usd_price.lower, self.stablecoin_supply
            )
        return UFix64.one(N9)

    def _levercoin_supply(self) -> UFix64:
        if self.levercoin_supply is None:
            raise ExchangeMathError(ErrorCode.LEVERCOIN_NAV, "levercoin supply unavailable")
        return self.levercoin_supply

    def levercoin_mint_nav(self) -> UFix64:
        return next_levercoin_mint_nav(
            self.total_collateral,
            self.collateral_usd_price,
            self.stablecoin_supply,
            self.stablecoin_nav(),
            self._levercoin_supply(),
        )

    def levercoin_redeem_nav(self) -> UFix64:
        return next_levercoin_redeem_nav(
            self.total_collateral,
            self.collateral_usd_price,
            self.stablecoin_supply,
            self.stablecoin_nav(),
            self._levercoin_supply(),
        )

    def swap_conversion(self) -> SwapConversion:
        levercoin_nav = PriceRange(self.levercoin_redeem_nav(), self.levercoin_mint_nav())
        return SwapConversion(self.stablecoin_nav(), levercoin_nav)

    def stability_pool_cap(self, stablecoin_in_pool: UFix64, levercoin_in_pool: UFix64) -> UFix64:
        return stability_pool_cap(
            self.stablecoin_nav(), stablecoin_in_pool, self.levercoin_mint_nav(), levercoin_in_pool
        )

    # ------------------------------------------------------------------
    # Modes
    # ------------------------------------------------------------------

    def projected_stability_mode(self, new_total: UFix64, new_stablecoin: UFix64) -> StabilityMode:
        projected_cr = collateral_ratio(new_total, self.collateral_usd_price.lower, new_stablecoin)
        return self.stability_controller.stability_mode(projected_cr)

    def select_stability_mode_for_fees(self, projected: StabilityMode) -> StabilityMode:
        return worse_mode(self.stability_mode, projected)

    # ------------------------------------------------------------------
    # Limits
    # ------------------------------------------------------------------

    def max_mintable_stablecoin(self) -> UFix64:
        return max_mintable_stablecoin(
            self.stability_controller.min_stability_threshold(),
            self.total_collateral,
            self.collateral_usd_price.upper,
            self.stablecoin_supply,
        )

    def max_swappable_stablecoin(self) -> UFix64:
        return max_swappable_stablecoin(
            self.stability_controller.min_stability_threshold(),
            self.total_value_locked(),
            self.stablecoin_supply,
        )

    def max_swappable_stablecoin_to_next_threshold(self) -> UFix64:
        threshold = self.stability_controller.next_stability_threshold(self.stability_mode)
        if threshold is None:
            raise StabilityError(ErrorCode.NO_NEXT_STABILITY_THRESHOLD, str(self.stability_mode))
        return max_swappable_stablecoin(threshold, self.total_value_locked(), self.stablecoin_supply)

    def validate_stablecoin_amount(self, requested: UFix64) -> UFix64:
        limit = self.max_mintable_stablecoin()
        if requested > limit:
            raise ExchangeMathError(
                ErrorCode.REQUESTED_STABLECOIN_OVER_MAX_MINTABLE, f"{requested} > {limit}"
            )
        return requested

    def validate_stablecoin_swap_amount(self, requested: UFix64) -> UFix64:
        limit = self.max_swappable_stablecoin()
        if requested > limit:
            raise ExchangeMathError(
                ErrorCode.REQUESTED_STABLECOIN_OVER_MAX_MINTABLE, f"{requested} > {limit}"
            )
        return requested

    # ------------------------------------------------------------------
    # Fees
    # ------------------------------------------------------------------

    def _stablecoin_mint_fee_at(self, new_total: UFix64, new_stablecoin: UFix64, amount: UFix64) -> FeeExtract:
        projected_cr = collateral_ratio(new_total, self.collateral_usd_price.lower, new_stablecoin)
        mode = self.select_stability_mode_for_fees(self.stability_controller.stability_mode(projected_cr))
        return FeeExtract.new(self.stablecoin_fees.mint_fee_at(mode, projected_cr), amount)

    def _stablecoin_redeem_fee_at(self, new_total: UFix64, new_stablecoin: UFix64, amount: UFix64) -> FeeExtract:
        projected_cr = collateral_ratio(new_total, self.collateral_usd_price.lower, new_stablecoin)
        mode = self.select_stability_mode_for_fees(self.stability_controller.stability_mode(projected_cr))
        return FeeExtract.new(self.stablecoin_fees.redeem_fee_at(mode, projected_cr), amount)

    def _levercoin_fee_mode(self, new_total: UFix64) -> StabilityMode:
        # Levercoin flows move collateral but leave the stablecoin supply alone.
        projected = self.projected_stability_mode(new_total, self.stablecoin_supply)
        return self.select_stability_mode_for_fees(projected)

    def levercoin_to_stablecoin_fee(self, amount_stablecoin: UFix64) -> FeeExtract:
        new_stablecoin = _checked(
            ErrorCode.DESTINATION_FEE_STABLECOIN, self.stablecoin_supply.checked_add, amount_stablecoin
        )
        projected = self.projected_stability_mode(self.total_collateral, new_stablecoin)
        mode = self.select_stability_mode_for_fees(projected)
        return FeeExtract.new(self.levercoin_fees.swap_to_stablecoin_fee(mode), amount_stablecoin)

    def stablecoin_to_levercoin_fee(self, amount_stablecoin: UFix64) -> FeeExtract:
        new_stablecoin = _checked(
            ErrorCode.DESTINATION_FEE_STABLECOIN, self.stablecoin_supply.checked_sub, amount_stablecoin
        )
        projected = self.projected_stability_mode(self.total_collateral, new_stablecoin)
        mode = self.select_stability_mode_for_fees(projected)
        return FeeExtract.new(self.levercoin_fees.swap_from_stablecoin_fee(mode), amount_stablecoin)


def _build_controller(config: EngineConfig) -> StabilityController:
    controller = config.stability_controller()
    check_threshold_alignment(controller)
    return controller


@dataclass(frozen=True)
class LstExchangeContext(ExchangeContext):
    lst_max_epoch_age: int = 0

    @classmethod
    def load(
        cls,
        clock: Clock,
        total_sol_cache: TotalSolCache,
        sol_usd_feed: PriceSource,
        stablecoin_supply: UFix64,
        levercoin_supply: Optional[UFix64],
        config: EngineConfig,
        stablecoin_fees: Optional[StablecoinFeeModel] = None,
    ) -> "LstExchangeContext":
        total_sol = total_sol_cache.get_validated(clock.epoch)
        sol_usd_price = sol_usd_feed.query_price(clock, config.oracle, N8)
        controller = _build_controller(config)
        cr = collateral_ratio(total_sol, sol_usd_price.lower, stablecoin_supply)
        mode = controller.stability_mode(cr)
        logger.debug("lst context: total_sol=%s cr=%s mode=%s", total_sol, cr, mode)
        return cls(
            clock=clock,
            total_collateral=total_sol,
            collateral_usd_price=sol_usd_price,
            stablecoin_supply=stablecoin_supply,
            levercoin_supply=levercoin_supply,
            collateral_ratio=cr,
            stability_controller=controller,
            stability_mode=mode,
            stablecoin_fees=config.stablecoin_fees if stablecoin_fees is None else stablecoin_fees,
            levercoin_fees=config.levercoin_fees,
            lst_max_epoch_age=config.lst_max_epoch_age,
        )

    def token_conversion(self, lst_sol_price: LstSolPrice) -> Conversion:
        price = lst_sol_price.get_epoch_price(self.clock.epoch, self.lst_max_epoch_age)
        return Conversion(self.collateral_usd_price, price)

    def _sol_value(self, lst_sol_price: LstSolPrice, amount_lst: UFix64) -> UFix64:
        return lst_sol_price.convert_sol(amount_lst, self.clock.epoch, self.lst_max_epoch_age)

    def stablecoin_mint_fee(self, lst_sol_price: LstSolPrice, amount_lst: UFix64) -> FeeExtract:
        """Fee on LST deposited to mint stablecoin, priced at the post-mint ratio."""
        new_sol = self._sol_value(lst_sol_price, amount_lst)
        new_total = _checked(ErrorCode.DESTINATION_FEE_SOL, self.total_collateral.checked_add, new_sol)
        minted = self.token_conversion(lst_sol_price).lst_to_token(amount_lst, self.stablecoin_nav())
        new_stablecoin = _checked(ErrorCode.DESTINATION_FEE_STABLECOIN, minted.checked_add, self.stablecoin_supply)
        return self._stablecoin_mint_fee_at(new_total, new_stablecoin, amount_lst)

    def stablecoin_redeem_fee(self, lst_sol_price: LstSolPrice, amount_lst: UFix64) -> FeeExtract:
        sol_out = self._sol_value(lst_sol_price, amount_lst)
        new_total = _checked(ErrorCode.DESTINATION_FEE_SOL, self.total_collateral.checked_sub, sol_out)
        redeemed = self.token_conversion(lst_sol_price).lst_to_token(amount_lst, self.stablecoin_nav())
        new_stablecoin = _checked(
            ErrorCode.DESTINATION_FEE_STABLECOIN, self.stablecoin_supply.checked_sub, redeemed
        )
        return self._stablecoin_redeem_fee_at(new_total, new_stablecoin, amount_lst)

    def levercoin_mint_fee(self, lst_sol_price: LstSolPrice, amount_lst: UFix64) -> FeeExtract:
        new_sol = self._sol_value(lst_sol_price, amount_lst)
        new_total = _checked(ErrorCode.DESTINATION_FEE_SOL, self.total_collateral.checked_add, new_sol)
        fee = self.levercoin_fees.mint_fee(self._levercoin_fee_mode(new_total))
        return FeeExtract.new(fee, amount_lst)

    def levercoin_redeem_fee(self, lst_sol_price: LstSolPrice, amount_lst: UFix64) -> FeeExtract:
        sol_out = self._sol_value(lst_sol_price, amount_lst)
        new_total = _checked(ErrorCode.DESTINATION_FEE_SOL, self.total_collateral.checked_sub, sol_out)
        fee = self.levercoin_fees.redeem_fee(self._levercoin_fee_mode(new_total))
        return FeeExtract.new(fee, amount_lst)

    def sol_to_stablecoin(self, amount_sol: UFix64) -> UFix64:
        conversion = Conversion(self.collateral_usd_price, UFix64.one(N9))
        return conversion.lst_to_token(amount_sol, self.stablecoin_nav())

    def sol_to_levercoin(self, amount_sol: UFix64) -> UFix64:
        conversion = Conversion(self.collateral_usd_price, UFix64.one(N9))
        return conversion.lst_to_token(amount_sol, self.levercoin_mint_nav())


@dataclass(frozen=True)
class ExoExchangeContext(ExchangeContext):
    """Single exogenous collateral asset. Amounts are N9 internally whatever the token's decimals."""

    @classmethod
    def load(
        cls,
        clock: Clock,
        total_collateral: UFix64,
        collateral_usd_feed: PriceSource,
        virtual_stablecoin: VirtualStablecoin,
        levercoin_supply: Optional[UFix64],
        config: EngineConfig,
        stablecoin_fees: Optional[StablecoinFeeModel] = None,
    ) -> "ExoExchangeContext":
        price = collateral_usd_feed.query_price(clock, config.oracle, N8)
        controller = _build_controller(config)
        supply = virtual_stablecoin.supply
        cr = collateral_ratio(total_collateral, price.lower, supply)
        mode = controller.stability_mode(cr)
        logger.debug("exo context: total=%s cr=%s mode=%s", total_collateral, cr, mode)
        return cls(
            clock=clock,
            total_collateral=total_collateral,
            collateral_usd_price=price,
            stablecoin_supply=supply,
            levercoin_supply=levercoin_supply,
            collateral_ratio=cr,
            stability_controller=controller,
            stability_mode=mode,
            stablecoin_fees=CurveStablecoinFees.shipped() if stablecoin_fees is None else stablecoin_fees,
            levercoin_fees=config.levercoin_fees,
        )

    def exo_conversion(self) -> ExoConversion:
        return ExoConversion(self.collateral_usd_price)

    def stablecoin_mint_fee(self, collateral_amount: UFix64) -> FeeExtract:
        new_total = _checked(
            ErrorCode.EXO_DESTINATION_COLLATERAL, self.total_collateral.checked_add, collateral_amount
        )
        minted = self.exo_conversion().exo_to_token(collateral_amount, self.stablecoin_nav())
        new_stablecoin = _checked(ErrorCode.EXO_DESTINATION_STABLECOIN, minted.checked_add, self.stablecoin_supply)
        return self._stablecoin_mint_fee_at(new_total, new_stablecoin, collateral_amount)

    def stablecoin_redeem_fee(self, collateral_amount: UFix64) -> FeeExtract:
        new_total = _checked(
            ErrorCode.EXO_DESTINATION_COLLATERAL, self.total_collateral.checked_sub, collateral_amount
        )
        redeemed = self.exo_conversion().exo_to_token(collateral_amount, self.stablecoin_nav())
        new_stablecoin = _checked(
            ErrorCode.EXO_DESTINATION_STABLECOIN, self.stablecoin_supply.checked_sub, redeemed
        )
        return self._stablecoin_redeem_fee_at(new_total, new_stablecoin, collateral_amount)

    def levercoin_mint_fee(self, collateral_amount: UFix64) -> FeeExtract:
        new_total = _checked(
            ErrorCode.EXO_DESTINATION_COLLATERAL, self.total_collateral.checked_add, collateral_amount
        )
        fee = self.levercoin_fees.mint_fee(self._levercoin_fee_mode(new_total))
        return FeeExtract.new(fee, collateral_amount)

    def levercoin_redeem_fee(self, collateral_amount: UFix64) -> FeeExtract:
        new_total = _checked(
            ErrorCode.EXO_DESTINATION_COLLATERAL, self.total_collateral.checked_sub, collateral_amount
        )
        fee = self.levercoin_fees.redeem_fee(self._levercoin_fee_mode(new_total))
        return FeeExtract.new(fee, collateral_amount)
