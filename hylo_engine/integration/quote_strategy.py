"""
Quote strategies.

Two independent ways of answering "how much ``token_out`` for this much
``token_in``":

``ProtocolStateStrategy``
    Runs the pure token operations over the immutable ``ProtocolState``.

``LedgerReplayStrategy``
    Copies the snapshot into a mutable ``Ledger``, executes the operation as
    the program would (debit the user, move collateral into or out of the
    vault, credit the treasury, mint or burn supply) and reads the quote
    back from the balance deltas. Prices, modes and fees are recomputed from
    the ledger's own balances with the core math kernels; the exchange
    contexts are never consulted.

Both must agree. The ledger also supports executing several operations in a
row, each priced against the state the previous one left behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from typing import Dict, Optional, Protocol, Tuple

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
from ..core.fix import N8, N9, UFix64
from ..core.oracle import PriceRange
from ..core.stability_mode import StabilityController, StabilityMode, worse_mode
from ..core.stability_pool_math import (
    amount_token_to_withdraw,
    lp_token_nav,
    lp_token_out,
    stablecoin_withdrawal_fee,
)
from ..errors import ErrorCode, ExchangeMathError, OperationError, reraise_as
from ..state.lst_sol_price import LstSolPrice
from ..state.total_sol_cache import TotalSolCache
from ..state.virtual_stablecoin import VirtualStablecoin
from .operations import (
    EXO_OPERATIONS,
    Operation,
    OperationOutput,
    compute_output,
    operation_allowed_in_mode,
    operation_for_pair,
)
from .protocol_snapshot import ProtocolState
from .tokens import Token


logger = logging.getLogger(__name__)


class QuoteStrategy(Protocol):
    def quote(self, token_in: Token, token_out: Token, amount_in: UFix64) -> OperationOutput: ...


@dataclass(frozen=True)
class ProtocolStateStrategy:
    state: ProtocolState

    def quote(self, token_in: Token, token_out: Token, amount_in: UFix64) -> OperationOutput:
        return compute_output(self.state, token_in, token_out, amount_in)


def _credit(balances: Dict[Token, UFix64], token: Token, amount: UFix64) -> None:
    current = balances.get(token)
    balances[token] = amount if current is None else current.checked_add(amount)


def _debit(balances: Dict[Token, UFix64], token: Token, amount: UFix64) -> None:
    current = balances.get(token)
    if current is None:
        current = UFix64.zero(amount.exp)
    balances[token] = current.checked_sub(amount)


def _balance(balances: Dict[Token, UFix64], token: Token, exp: int) -> UFix64:
    return balances.get(token, UFix64.zero(exp))


def _require_supply(supply: Optional[UFix64]) -> UFix64:
    if supply is None:
        raise ExchangeMathError(ErrorCode.LEVERCOIN_NAV, "levercoin supply unavailable")
    return supply


# ---------------------------------------------------------------------------
# Pricing
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Market:
    """
    One collateral family as the ledger sees it right before a step.

    ``total`` is collateral at N9 (SOL for the LST family, the asset itself
    for the exogenous pair). A projected balance that cannot be formed
    raises ``collateral_code`` or ``stablecoin_code``.
    """

    total: UFix64
    price: PriceRange
    stablecoin_supply: UFix64
    levercoin_supply: Optional[UFix64]
    controller: StabilityController
    stablecoin_fees: StablecoinFeeModel
    levercoin_fees: LevercoinFees
    collateral_code: ErrorCode
    stablecoin_code: ErrorCode

    @property
    def mode(self) -> StabilityMode:
        return self.controller.stability_mode(
            collateral_ratio(self.total, self.price.lower, self.stablecoin_supply)
        )

    @property
    def stablecoin_nav(self) -> UFix64:
        if self.mode is StabilityMode.DEPEG:
            return depeg_stablecoin_nav(self.total, self.price.lower, self.stablecoin_supply)
        return UFix64.one(N9)

    def levercoin_mint_nav(self) -> UFix64:
        supply = _require_supply(self.levercoin_supply)
        return next_levercoin_mint_nav(
            self.total, self.price, self.stablecoin_supply, self.stablecoin_nav, supply
        )

    def levercoin_redeem_nav(self) -> UFix64:
        supply = _require_supply(self.levercoin_supply)
        return next_levercoin_redeem_nav(
            self.total, self.price, self.stablecoin_supply, self.stablecoin_nav, supply
        )

    def swap_conversion(self) -> SwapConversion:
        """Levercoin sells at its redeem NAV and buys at its mint NAV."""
        levercoin_nav = PriceRange(self.levercoin_redeem_nav(), self.levercoin_mint_nav())
        return SwapConversion(self.stablecoin_nav, levercoin_nav)

    def max_mintable(self) -> UFix64:
        return max_mintable_stablecoin(
            self.controller.min_stability_threshold(), self.total, self.price.upper, self.stablecoin_supply
        )

    def max_swappable(self) -> UFix64:
        tvl = total_value_locked(self.total, self.price.lower)
        return max_swappable_stablecoin(self.controller.min_stability_threshold(), tvl, self.stablecoin_supply)

    def _fee_mode(self, new_total: UFix64, new_supply: UFix64) -> Tuple[StabilityMode, UFix64]:
        projected_cr = collateral_ratio(new_total, self.price.lower, new_supply)
        return worse_mode(self.mode, self.controller.stability_mode(projected_cr)), projected_cr

    def _total_after(self, collateral: UFix64, incoming: bool) -> UFix64:
        with reraise_as(ExchangeMathError, self.collateral_code):
            if incoming:
                return self.total.checked_add(collateral)
            return self.total.checked_sub(collateral)

    def _supply_after(self, stablecoin: UFix64, incoming: bool) -> UFix64:
        with reraise_as(ExchangeMathError, self.stablecoin_code):
            if incoming:
                return stablecoin.checked_add(self.stablecoin_supply)
            return self.stablecoin_supply.checked_sub(stablecoin)

    def stablecoin_mint_fee(self, collateral: UFix64, stablecoin: UFix64, amount: UFix64) -> FeeExtract:
        """Fee on ``amount`` when ``collateral`` comes in and ``stablecoin`` is minted against it."""
        new_total = self._total_after(collateral, incoming=True)
        mode, cr = self._fee_mode(new_total, self._supply_after(stablecoin, incoming=True))
        return FeeExtract.new(self.stablecoin_fees.mint_fee_at(mode, cr), amount)

    def stablecoin_redeem_fee(self, collateral: UFix64, stablecoin: UFix64, amount: UFix64) -> FeeExtract:
        new_total = self._total_after(collateral, incoming=False)
        mode, cr = self._fee_mode(new_total, self._supply_after(stablecoin, incoming=False))
        return FeeExtract.new(self.stablecoin_fees.redeem_fee_at(mode, cr), amount)

    def levercoin_mint_fee(self, collateral: UFix64, amount: UFix64) -> FeeExtract:
        mode, _ = self._fee_mode(self._total_after(collateral, incoming=True), self.stablecoin_supply)
        return FeeExtract.new(self.levercoin_fees.mint_fee(mode), amount)

    def levercoin_redeem_fee(self, collateral: UFix64, amount: UFix64) -> FeeExtract:
        mode, _ = self._fee_mode(self._total_after(collateral, incoming=False), self.stablecoin_supply)
        return FeeExtract.new(self.levercoin_fees.redeem_fee(mode), amount)

    def swap_fee(self, stablecoin: UFix64, to_stablecoin: bool) -> FeeExtract:
        """Levercoin swap fee; the swap mints or burns ``stablecoin`` at an unchanged total."""
        mode, _ = self._fee_mode(self.total, self._supply_after(stablecoin, incoming=to_stablecoin))
        if to_stablecoin:
            return FeeExtract.new(self.levercoin_fees.swap_to_stablecoin_fee(mode), stablecoin)
        return FeeExtract.new(self.levercoin_fees.swap_from_stablecoin_fee(mode), stablecoin)


# ---------------------------------------------------------------------------
# Ledger
# ---------------------------------------------------------------------------


@dataclass
class Ledger:
    """
    Mutable copy of every balance an operation touches.

    ``user`` and ``treasury`` start empty; ``execute`` funds the user with the
    input amount before running the operation. A step that raises leaves the
    ledger partially updated; quotes always run on a fresh copy.
    """

    base: ProtocolState
    total_sol_cache: TotalSolCache
    vaults: Dict[Token, UFix64]
    stablecoin: VirtualStablecoin
    levercoin_supply: Optional[UFix64]
    lp_token_supply: UFix64
    stablecoin_in_pool: UFix64
    levercoin_in_pool: UFix64
    exo_total_collateral: Optional[UFix64] = None
    exo_stablecoin: Optional[VirtualStablecoin] = None
    exo_levercoin_supply: Optional[UFix64] = None
    user: Dict[Token, UFix64] = field(default_factory=dict)
    treasury: Dict[Token, UFix64] = field(default_factory=dict)

    @classmethod
    def from_state(cls, state: ProtocolState) -> "Ledger":
        snap = state.snapshot
        ledger = cls(
            base=state,
            total_sol_cache=snap.total_sol_cache,
            vaults={header.token: header.vault_balance for header in snap.lst_headers},
            stablecoin=VirtualStablecoin(snap.stablecoin_supply),
            levercoin_supply=snap.levercoin_supply,
            lp_token_supply=snap.lp_token_supply,
            stablecoin_in_pool=snap.stablecoin_in_pool,
            levercoin_in_pool=snap.levercoin_in_pool,
        )
        if snap.exo_pair is not None:
            ledger.exo_total_collateral = snap.exo_pair.total_collateral
            ledger.exo_stablecoin = snap.exo_pair.virtual_stablecoin
            ledger.exo_levercoin_supply = snap.exo_pair.levercoin_supply
        return ledger

    def state(self) -> ProtocolState:
        """Rebuild a ``ProtocolState`` from the current balances, keeping the base config and fee models."""
        snap = self.base.snapshot
        exo_pair = snap.exo_pair
        if exo_pair is not None:
            exo_pair = replace(
                exo_pair,
                total_collateral=self.exo_total_collateral,
                virtual_stablecoin=self.exo_stablecoin,
                levercoin_supply=self.exo_levercoin_supply,
            )
        snapshot = replace(
            snap,
            total_sol_cache=self.total_sol_cache,
            lst_headers=tuple(replace(h, vault_balance=self.vaults[h.token]) for h in snap.lst_headers),
            stablecoin_supply=self.stablecoin.supply,
            levercoin_supply=self.levercoin_supply,
            lp_token_supply=self.lp_token_supply,
            stablecoin_in_pool=self.stablecoin_in_pool,
            levercoin_in_pool=self.levercoin_in_pool,
            exo_pair=exo_pair,
        )
        exo_context = self.base.exo_context
        return ProtocolState.build(
            snapshot,
            self.base.config,
            stablecoin_fees=self.base.exchange_context.stablecoin_fees,
            exo_stablecoin_fees=None if exo_context is None else exo_context.stablecoin_fees,
        )

    # ------------------------------------------------------------------
    # Pricing from balances
    # ------------------------------------------------------------------

    @property
    def epoch(self) -> int:
        return self.base.snapshot.clock.epoch

    def lst_market(self) -> Market:
        snap = self.base.snapshot
        config = self.base.config
        return Market(
            total=self.total_sol_cache.get_validated(self.epoch),
            price=snap.sol_usd_feed.query_price(snap.clock, config.oracle, N8),
            stablecoin_supply=self.stablecoin.supply,
            levercoin_supply=self.levercoin_supply,
            controller=config.stability_controller(),
            stablecoin_fees=self.base.exchange_context.stablecoin_fees,
            levercoin_fees=config.levercoin_fees,
            collateral_code=ErrorCode.DESTINATION_FEE_SOL,
            stablecoin_code=ErrorCode.DESTINATION_FEE_STABLECOIN,
        )

    def exo_market(self) -> Market:
        snap = self.base.snapshot
        config = self.base.config
        exo_context = self.base.require_exo()
        pair = snap.exo_pair
        return Market(
            total=self.exo_total_collateral,
            price=pair.collateral_usd_feed.query_price(snap.clock, config.oracle, N8),
            stablecoin_supply=self.exo_stablecoin.supply,
            levercoin_supply=self.exo_levercoin_supply,
            controller=config.stability_controller(),
            stablecoin_fees=exo_context.stablecoin_fees,
            levercoin_fees=config.levercoin_fees,
            collateral_code=ErrorCode.EXO_DESTINATION_COLLATERAL,
            stablecoin_code=ErrorCode.EXO_DESTINATION_STABLECOIN,
        )

    def _lst_price(self, lst: Token) -> Tuple[LstSolPrice, UFix64]:
        price = self.base.lst_price(lst)
        return price, price.get_epoch_price(self.epoch, self.base.config.lst_max_epoch_age)

    def _sol_value(self, price: LstSolPrice, amount: UFix64) -> UFix64:
        return price.convert_sol(amount, self.epoch, self.base.config.lst_max_epoch_age)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def execute(self, token_in: Token, token_out: Token, amount_in: UFix64) -> OperationOutput:
        operation = operation_for_pair(token_in, token_out)
        if amount_in.exp != token_in.exp:
            raise ValueError(f"{token_in} amounts are at e{token_in.exp}, got e{amount_in.exp}")
        market = self.exo_market() if operation in EXO_OPERATIONS else self.lst_market()
        mode = market.mode
        if not operation_allowed_in_mode(operation, mode):
            raise OperationError(ErrorCode.OPERATION_DISABLED, f"{operation.value} disabled in {mode}")

        _credit(self.user, token_in, amount_in)
        out_before = _balance(self.user, token_out, token_out.exp)
        treasury_before = dict(self.treasury)

        fee_mint, fee_base = self._step(operation, market, token_in, token_out, amount_in)

        amount_out = _balance(self.user, token_out, token_out.exp).checked_sub(out_before)
        fee_after = _balance(self.treasury, fee_mint, fee_base.exp)
        fee_amount = fee_after.checked_sub(_balance(treasury_before, fee_mint, fee_base.exp))
        logger.debug("replayed %s: out=%s fee=%s %s", operation.value, amount_out, fee_amount, fee_mint)
        return OperationOutput(amount_in, amount_out, fee_amount, fee_mint, fee_base)

    def _step(
        self, operation: Operation, market: Market, token_in: Token, token_out: Token, amount: UFix64
    ) -> Tuple[Token, UFix64]:
        if operation is Operation.MINT_STABLECOIN:
            return self._mint_stablecoin(market, token_in, amount)
        if operation is Operation.REDEEM_STABLECOIN:
            return self._redeem_stablecoin(market, token_out, amount)
        if operation is Operation.MINT_LEVERCOIN:
            return self._mint_levercoin(market, token_in, amount)
        if operation is Operation.REDEEM_LEVERCOIN:
            return self._redeem_levercoin(market, token_out, amount)
        if operation is Operation.SWAP_STABLE_TO_LEVER:
            return self._swap_stable_to_lever(market, amount)
        if operation is Operation.SWAP_LEVER_TO_STABLE:
            return self._swap_lever_to_stable(market, amount)
        if operation is Operation.LST_SWAP:
            return self._lst_swap(token_in, token_out, amount)
        if operation is Operation.DEPOSIT_TO_STABILITY_POOL:
            return self._deposit(market, amount)
        if operation is Operation.WITHDRAW_FROM_STABILITY_POOL:
            return self._withdraw(amount)
        if operation is Operation.WITHDRAW_AND_REDEEM:
            return self._withdraw_and_redeem(market, token_out, amount)
        return self._exo_step(operation, market, amount)

    # LST exchange

    def _mint_stablecoin(self, market: Market, lst: Token, amount: UFix64) -> Tuple[Token, UFix64]:
        price, lst_sol = self._lst_price(lst)
        conversion = Conversion(market.price, lst_sol)
        nav = market.stablecoin_nav
        fee = market.stablecoin_mint_fee(
            self._sol_value(price, amount), conversion.lst_to_token(amount, nav), amount
        )
        minted = conversion.lst_to_token(fee.amount_remaining, nav)
        limit = market.max_mintable()
        if minted > limit:
            raise ExchangeMathError(ErrorCode.REQUESTED_STABLECOIN_OVER_MAX_MINTABLE, f"{minted} > {limit}")

        _debit(self.user, lst, amount)
        _credit(self.vaults, lst, fee.amount_remaining)
        _credit(self.treasury, lst, fee.fees_extracted)
        self.total_sol_cache = self.total_sol_cache.increment(
            self._sol_value(price, fee.amount_remaining), self.epoch
        )
        self.stablecoin = self.stablecoin.mint(minted)
        _credit(self.user, Token.HYUSD, minted)
        return lst, amount

    def _redeem_stablecoin(self, market: Market, lst: Token, amount: UFix64) -> Tuple[Token, UFix64]:
        price, lst_sol = self._lst_price(lst)
        conversion = Conversion(market.price, lst_sol)
        nav = market.stablecoin_nav
        lst_out = conversion.token_to_lst(amount, nav)
        fee = market.stablecoin_redeem_fee(
            self._sol_value(price, lst_out), conversion.lst_to_token(lst_out, nav), lst_out
        )

        _debit(self.user, Token.HYUSD, amount)
        self.stablecoin = self.stablecoin.burn(amount)
        _debit(self.vaults, lst, lst_out)
        self.total_sol_cache = self.total_sol_cache.decrement(self._sol_value(price, lst_out), self.epoch)
        _credit(self.treasury, lst, fee.fees_extracted)
        _credit(self.user, lst, fee.amount_remaining)
        return lst, lst_out

    def _mint_levercoin(self, market: Market, lst: Token, amount: UFix64) -> Tuple[Token, UFix64]:
        price, lst_sol = self._lst_price(lst)
        fee = market.levercoin_mint_fee(self._sol_value(price, amount), amount)
        minted = Conversion(market.price, lst_sol).lst_to_token(fee.amount_remaining, market.levercoin_mint_nav())

        _debit(self.user, lst, amount)
        _credit(self.vaults, lst, fee.amount_remaining)
        _credit(self.treasury, lst, fee.fees_extracted)
        self.total_sol_cache = self.total_sol_cache.increment(
            self._sol_value(price, fee.amount_remaining), self.epoch
        )
        self.levercoin_supply = _require_supply(self.levercoin_supply).checked_add(minted)
        _credit(self.user, Token.XSOL, minted)
        return lst, amount

    def _redeem_levercoin(self, market: Market, lst: Token, amount: UFix64) -> Tuple[Token, UFix64]:
        price, lst_sol = self._lst_price(lst)
        lst_out = Conversion(market.price, lst_sol).token_to_lst(amount, market.levercoin_redeem_nav())
        fee = market.levercoin_redeem_fee(self._sol_value(price, lst_out), lst_out)

        _debit(self.user, Token.XSOL, amount)
        self.levercoin_supply = _require_supply(self.levercoin_supply).checked_sub(amount)
        _debit(self.vaults, lst, lst_out)
        self.total_sol_cache = self.total_sol_cache.decrement(self._sol_value(price, lst_out), self.epoch)
        _credit(self.treasury, lst, fee.fees_extracted)
        _credit(self.user, lst, fee.amount_remaining)
        return lst, lst_out

    def _swap_stable_to_lever(self, market: Market, amount: UFix64) -> Tuple[Token, UFix64]:
        fee = market.swap_fee(amount, to_stablecoin=False)
        swap = market.swap_conversion()
        minted = swap.stable_to_lever(fee.amount_remaining)

        _debit(self.user, Token.HYUSD, amount)
        _credit(self.treasury, Token.HYUSD, fee.fees_extracted)
        self.stablecoin = self.stablecoin.burn(fee.amount_remaining)
        self.levercoin_supply = _require_supply(self.levercoin_supply).checked_add(minted)
        _credit(self.user, Token.XSOL, minted)
        return Token.HYUSD, amount

    def _swap_lever_to_stable(self, market: Market, amount: UFix64) -> Tuple[Token, UFix64]:
        total = market.swap_conversion().lever_to_stable(amount)
        limit = market.max_swappable()
        if total > limit:
            raise ExchangeMathError(ErrorCode.REQUESTED_STABLECOIN_OVER_MAX_MINTABLE, f"{total} > {limit}")
        fee = market.swap_fee(total, to_stablecoin=True)

        _debit(self.user, Token.XSOL, amount)
        self.levercoin_supply = _require_supply(self.levercoin_supply).checked_sub(amount)
        self.stablecoin = self.stablecoin.mint(total)
        _credit(self.treasury, Token.HYUSD, fee.fees_extracted)
        _credit(self.user, Token.HYUSD, fee.amount_remaining)
        return Token.HYUSD, total

    def _lst_swap(self, lst_in: Token, lst_out: Token, amount: UFix64) -> Tuple[Token, UFix64]:
        config = self.base.config
        fee = config.lst_swap.apply_swap_fee(amount)
        out = self.base.lst_price(lst_in).convert_lst_amount(
            self.epoch, fee.amount_remaining, self.base.lst_price(lst_out), config.lst_max_epoch_age
        )

        _debit(self.user, lst_in, amount)
        _credit(self.vaults, lst_in, fee.amount_remaining)
        _credit(self.treasury, lst_in, fee.fees_extracted)
        _debit(self.vaults, lst_out, out)
        _credit(self.user, lst_out, out)
        return lst_in, amount

    # Stability pool

    def _deposit(self, market: Market, amount: UFix64) -> Tuple[Token, UFix64]:
        nav = lp_token_nav(
            market.stablecoin_nav,
            self.stablecoin_in_pool,
            market.levercoin_mint_nav(),
            self.levercoin_in_pool,
            self.lp_token_supply,
        )
        minted = lp_token_out(amount, nav)

        _debit(self.user, Token.HYUSD, amount)
        self.stablecoin_in_pool = self.stablecoin_in_pool.checked_add(amount)
        self.lp_token_supply = self.lp_token_supply.checked_add(minted)
        _credit(self.user, Token.SHYUSD, minted)
        return Token.HYUSD, UFix64.zero(Token.HYUSD.exp)

    def _burn_lp(self, amount: UFix64) -> Tuple[UFix64, UFix64]:
        stable = amount_token_to_withdraw(amount, self.lp_token_supply, self.stablecoin_in_pool)
        lever = amount_token_to_withdraw(amount, self.lp_token_supply, self.levercoin_in_pool)
        _debit(self.user, Token.SHYUSD, amount)
        self.lp_token_supply = self.lp_token_supply.checked_sub(amount)
        self.stablecoin_in_pool = self.stablecoin_in_pool.checked_sub(stable)
        self.levercoin_in_pool = self.levercoin_in_pool.checked_sub(lever)
        return stable, lever

    def _withdraw(self, amount: UFix64) -> Tuple[Token, UFix64]:
        if not self.levercoin_in_pool.is_zero():
            raise OperationError(ErrorCode.LEVERCOIN_IN_POOL, f"{self.levercoin_in_pool} levercoin in pool")
        stable, _ = self._burn_lp(amount)
        fee = FeeExtract.new(self.base.config.withdrawal_fee, stable)
        _credit(self.treasury, Token.HYUSD, fee.fees_extracted)
        _credit(self.user, Token.HYUSD, fee.amount_remaining)
        return Token.HYUSD, stable

    def _withdraw_and_redeem(self, market: Market, lst: Token, amount: UFix64) -> Tuple[Token, UFix64]:
        # Both redeem legs price against the market as it stood before the withdrawal.
        stable_in_pool = self.stablecoin_in_pool
        stable, lever = self._burn_lp(amount)
        withdrawal = stablecoin_withdrawal_fee(
            stable_in_pool,
            stable,
            market.stablecoin_nav,
            lever,
            market.levercoin_mint_nav(),
            self.base.config.withdrawal_fee,
        )
        _credit(self.treasury, Token.HYUSD, withdrawal.fees_extracted)

        fee_base = UFix64.zero(lst.exp)
        if not withdrawal.amount_remaining.is_zero():
            _credit(self.user, Token.HYUSD, withdrawal.amount_remaining)
            _, base = self._redeem_stablecoin(market, lst, withdrawal.amount_remaining)
            fee_base = fee_base.checked_add(base)
        if not lever.is_zero():
            _credit(self.user, Token.XSOL, lever)
            _, base = self._redeem_levercoin(market, lst, lever)
            fee_base = fee_base.checked_add(base)
        return lst, fee_base

    # Exogenous collateral

    def _exo_step(self, operation: Operation, market: Market, amount: UFix64) -> Tuple[Token, UFix64]:
        pair = self.base.snapshot.exo_pair
        collateral = pair.collateral
        conversion = ExoConversion(market.price)

        if operation in (Operation.EXO_MINT_STABLECOIN, Operation.EXO_MINT_LEVERCOIN):
            with reraise_as(ExchangeMathError, ErrorCode.EXO_UPCONVERT):
                deposited = amount.convert(N9)
            if operation is Operation.EXO_MINT_STABLECOIN:
                nav = market.stablecoin_nav
                fee = market.stablecoin_mint_fee(deposited, conversion.exo_to_token(deposited, nav), deposited)
                minted = conversion.exo_to_token(fee.amount_remaining, nav)
                limit = market.max_mintable()
                if minted > limit:
                    raise ExchangeMathError(
                        ErrorCode.REQUESTED_STABLECOIN_OVER_MAX_MINTABLE, f"{minted} > {limit}"
                    )
                self.exo_stablecoin = self.exo_stablecoin.mint(minted)
                out_token = Token.HYUSD
            else:
                fee = market.levercoin_mint_fee(deposited, deposited)
                minted = conversion.exo_to_token(fee.amount_remaining, market.levercoin_mint_nav())
                self.exo_levercoin_supply = _require_supply(self.exo_levercoin_supply).checked_add(minted)
                out_token = pair.levercoin
            _debit(self.user, collateral, amount)
            self.exo_total_collateral = self.exo_total_collateral.checked_add(fee.amount_remaining)
            _credit(self.treasury, collateral, fee.fees_extracted)
            _credit(self.user, out_token, minted)
            return collateral, deposited

        if operation is Operation.EXO_REDEEM_STABLECOIN:
            nav = market.stablecoin_nav
            released = conversion.token_to_exo(amount, nav)
            fee = market.stablecoin_redeem_fee(released, conversion.exo_to_token(released, nav), released)
            _debit(self.user, Token.HYUSD, amount)
            self.exo_stablecoin = self.exo_stablecoin.burn(amount)
        else:
            released = conversion.token_to_exo(amount, market.levercoin_redeem_nav())
            fee = market.levercoin_redeem_fee(released, released)
            _debit(self.user, pair.levercoin, amount)
            self.exo_levercoin_supply = _require_supply(self.exo_levercoin_supply).checked_sub(amount)
        self.exo_total_collateral = self.exo_total_collateral.checked_sub(released)
        _credit(self.treasury, collateral, fee.fees_extracted)
        with reraise_as(ExchangeMathError, ErrorCode.EXO_UPCONVERT):
            paid = fee.amount_remaining.convert(collateral.exp)
        _credit(self.user, collateral, paid)
        return collateral, released


@dataclass(frozen=True)
class LedgerReplayStrategy:
    state: ProtocolState

    def quote(self, token_in: Token, token_out: Token, amount_in: UFix64) -> OperationOutput:
        return Ledger.from_state(self.state).execute(token_in, token_out, amount_in)
