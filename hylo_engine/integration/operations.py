"""
Token operations: one quote function per supported pair.

Each function takes the validated ``ProtocolState`` and an input amount at
the input token's exponent, and returns an ``OperationOutput``. Composition
order is fixed per operation and follows the on-chain program:

- mint: fee on the deposited collateral, then convert the remainder
- redeem: convert to collateral, then fee on the collateral out
- lever to stable: convert, check the swap limit, then fee on the stablecoin

Fee-then-convert and convert-then-fee differ under truncation, so the order
is part of the contract.

Dispatch is an explicit capability table keyed by ``(token_in, token_out)``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum, unique
from typing import Callable, Dict, FrozenSet, List, Tuple

from ..core.fix import N9, UFix64
from ..core.stability_mode import StabilityMode
from ..core.stability_pool_math import (
    amount_token_to_withdraw,
    lp_token_nav,
    lp_token_out,
    stablecoin_withdrawal_fee,
)
from ..core.fee_controller import FeeExtract
from ..errors import ErrorCode, ExchangeMathError, FixedPointError, OperationError, reraise_as
from .protocol_snapshot import ProtocolState
from .tokens import LSTS, Token


logger = logging.getLogger(__name__)


@unique
class Operation(Enum):
    MINT_STABLECOIN = "mint_stablecoin"
    REDEEM_STABLECOIN = "redeem_stablecoin"
    MINT_LEVERCOIN = "mint_levercoin"
    REDEEM_LEVERCOIN = "redeem_levercoin"
    SWAP_STABLE_TO_LEVER = "swap_stable_to_lever"
    SWAP_LEVER_TO_STABLE = "swap_lever_to_stable"
    LST_SWAP = "lst_swap"
    EXO_MINT_STABLECOIN = "exo_mint_stablecoin"
    EXO_REDEEM_STABLECOIN = "exo_redeem_stablecoin"
    EXO_MINT_LEVERCOIN = "exo_mint_levercoin"
    EXO_REDEEM_LEVERCOIN = "exo_redeem_levercoin"
    DEPOSIT_TO_STABILITY_POOL = "deposit_to_stability_pool"
    WITHDRAW_FROM_STABILITY_POOL = "withdraw_from_stability_pool"
    WITHDRAW_AND_REDEEM = "withdraw_and_redeem"


EXO_OPERATIONS = frozenset(
    {
        Operation.EXO_MINT_STABLECOIN,
        Operation.EXO_REDEEM_STABLECOIN,
        Operation.EXO_MINT_LEVERCOIN,
        Operation.EXO_REDEEM_LEVERCOIN,
    }
)

_ALL_MODES = frozenset(StabilityMode)
_HEALTHY = frozenset({StabilityMode.NORMAL, StabilityMode.MODE_1})
_NOT_DEPEG = frozenset({StabilityMode.NORMAL, StabilityMode.MODE_1, StabilityMode.MODE_2})

MODE_AVAILABILITY: Dict[Operation, FrozenSet[StabilityMode]] = {
    Operation.MINT_STABLECOIN: _HEALTHY,
    Operation.REDEEM_STABLECOIN: _ALL_MODES,
    Operation.MINT_LEVERCOIN: _NOT_DEPEG,
    Operation.REDEEM_LEVERCOIN: _NOT_DEPEG,
    Operation.SWAP_STABLE_TO_LEVER: _NOT_DEPEG,
    Operation.SWAP_LEVER_TO_STABLE: _HEALTHY,
    Operation.LST_SWAP: _ALL_MODES,
    Operation.EXO_MINT_STABLECOIN: _HEALTHY,
    Operation.EXO_REDEEM_STABLECOIN: _ALL_MODES,
    Operation.EXO_MINT_LEVERCOIN: _NOT_DEPEG,
    Operation.EXO_REDEEM_LEVERCOIN: _NOT_DEPEG,
    Operation.DEPOSIT_TO_STABILITY_POOL: _NOT_DEPEG,
    Operation.WITHDRAW_FROM_STABILITY_POOL: _ALL_MODES,
    Operation.WITHDRAW_AND_REDEEM: _NOT_DEPEG,
}


def operation_allowed_in_mode(operation: Operation, mode: StabilityMode) -> bool:
    return mode in MODE_AVAILABILITY[operation]


def _require_mode(operation: Operation, mode: StabilityMode) -> None:
    if not operation_allowed_in_mode(operation, mode):
        raise OperationError(ErrorCode.OPERATION_DISABLED, f"{operation.value} disabled in {mode}")


@dataclass(frozen=True)
class OperationOutput:
    """
    Result of one quote.

    ``fee_amount`` and ``fee_base`` share the scale of the token the fee is
    charged in (``fee_mint``); ``fee_base`` is the amount the fee rate was
    applied to.
    """

    amount_in: UFix64
    amount_out: UFix64
    fee_amount: UFix64
    fee_mint: Token
    fee_base: UFix64


def _require_amount(token: Token, amount: UFix64) -> None:
    if not isinstance(amount, UFix64):
        raise TypeError("amount_in must be a UFix64")
    if amount.exp != token.exp:
        raise ValueError(f"{token} amounts are at e{token.exp}, got e{amount.exp}")


# ---------------------------------------------------------------------------
# LST exchange
# ---------------------------------------------------------------------------


def mint_stablecoin(state: ProtocolState, lst: Token, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.MINT_STABLECOIN, ctx.stability_mode)
    lst_price = state.lst_price(lst)
    fee = ctx.stablecoin_mint_fee(lst_price, amount_in)
    converted = ctx.token_conversion(lst_price).lst_to_token(fee.amount_remaining, ctx.stablecoin_nav())
    amount_out = ctx.validate_stablecoin_amount(converted)
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, lst, amount_in)


def redeem_stablecoin(state: ProtocolState, lst: Token, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.REDEEM_STABLECOIN, ctx.stability_mode)
    lst_price = state.lst_price(lst)
    lst_out = ctx.token_conversion(lst_price).token_to_lst(amount_in, ctx.stablecoin_nav())
    fee = ctx.stablecoin_redeem_fee(lst_price, lst_out)
    return OperationOutput(amount_in, fee.amount_remaining, fee.fees_extracted, lst, lst_out)


def mint_levercoin(state: ProtocolState, lst: Token, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.MINT_LEVERCOIN, ctx.stability_mode)
    lst_price = state.lst_price(lst)
    fee = ctx.levercoin_mint_fee(lst_price, amount_in)
    amount_out = ctx.token_conversion(lst_price).lst_to_token(fee.amount_remaining, ctx.levercoin_mint_nav())
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, lst, amount_in)


def redeem_levercoin(state: ProtocolState, lst: Token, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.REDEEM_LEVERCOIN, ctx.stability_mode)
    lst_price = state.lst_price(lst)
    lst_out = ctx.token_conversion(lst_price).token_to_lst(amount_in, ctx.levercoin_redeem_nav())
    fee = ctx.levercoin_redeem_fee(lst_price, lst_out)
    return OperationOutput(amount_in, fee.amount_remaining, fee.fees_extracted, lst, lst_out)


def swap_stable_to_lever(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.SWAP_STABLE_TO_LEVER, ctx.stability_mode)
    fee = ctx.stablecoin_to_levercoin_fee(amount_in)
    amount_out = ctx.swap_conversion().stable_to_lever(fee.amount_remaining)
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, Token.HYUSD, amount_in)


def swap_lever_to_stable(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.SWAP_LEVER_TO_STABLE, ctx.stability_mode)
    converted = ctx.swap_conversion().lever_to_stable(amount_in)
    stablecoin_total = ctx.validate_stablecoin_swap_amount(converted)
    fee = ctx.levercoin_to_stablecoin_fee(stablecoin_total)
    return OperationOutput(amount_in, fee.amount_remaining, fee.fees_extracted, Token.HYUSD, stablecoin_total)


def lst_swap(state: ProtocolState, lst_in: Token, lst_out: Token, amount_in: UFix64) -> OperationOutput:
    """LST to LST through both SOL prices, with the flat swap fee taken in the input LST."""
    ctx = state.exchange_context
    _require_mode(Operation.LST_SWAP, ctx.stability_mode)
    fee = state.config.lst_swap.apply_swap_fee(amount_in)
    amount_out = state.lst_price(lst_in).convert_lst_amount(
        ctx.clock.epoch, fee.amount_remaining, state.lst_price(lst_out), ctx.lst_max_epoch_age
    )
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, lst_in, amount_in)


# ---------------------------------------------------------------------------
# Exogenous collateral
# ---------------------------------------------------------------------------


def _exo_upconvert(amount: UFix64) -> UFix64:
    with reraise_as(ExchangeMathError, ErrorCode.EXO_UPCONVERT):
        return amount.convert(N9)


def _exo_downconvert(amount: UFix64, token: Token) -> UFix64:
    with reraise_as(ExchangeMathError, ErrorCode.EXO_UPCONVERT):
        return amount.convert(token.exp)


def exo_mint_stablecoin(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    """Collateral fees are reported at N9, the scale the exchange math runs at."""
    ctx = state.require_exo()
    _require_mode(Operation.EXO_MINT_STABLECOIN, ctx.stability_mode)
    collateral = _exo_upconvert(amount_in)
    fee = ctx.stablecoin_mint_fee(collateral)
    converted = ctx.exo_conversion().exo_to_token(fee.amount_remaining, ctx.stablecoin_nav())
    amount_out = ctx.validate_stablecoin_amount(converted)
    pair = state.snapshot.exo_pair
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, pair.collateral, collateral)


def exo_redeem_stablecoin(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    ctx = state.require_exo()
    _require_mode(Operation.EXO_REDEEM_STABLECOIN, ctx.stability_mode)
    pair = state.snapshot.exo_pair
    collateral_out = ctx.exo_conversion().token_to_exo(amount_in, ctx.stablecoin_nav())
    fee = ctx.stablecoin_redeem_fee(collateral_out)
    amount_out = _exo_downconvert(fee.amount_remaining, pair.collateral)
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, pair.collateral, collateral_out)


def exo_mint_levercoin(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    ctx = state.require_exo()
    _require_mode(Operation.EXO_MINT_LEVERCOIN, ctx.stability_mode)
    pair = state.snapshot.exo_pair
    collateral = _exo_upconvert(amount_in)
    fee = ctx.levercoin_mint_fee(collateral)
    amount_out = ctx.exo_conversion().exo_to_token(fee.amount_remaining, ctx.levercoin_mint_nav())
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, pair.collateral, collateral)


def exo_redeem_levercoin(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    ctx = state.require_exo()
    _require_mode(Operation.EXO_REDEEM_LEVERCOIN, ctx.stability_mode)
    pair = state.snapshot.exo_pair
    collateral_out = ctx.exo_conversion().token_to_exo(amount_in, ctx.levercoin_redeem_nav())
    fee = ctx.levercoin_redeem_fee(collateral_out)
    amount_out = _exo_downconvert(fee.amount_remaining, pair.collateral)
    return OperationOutput(amount_in, amount_out, fee.fees_extracted, pair.collateral, collateral_out)


# ---------------------------------------------------------------------------
# Stability pool
# ---------------------------------------------------------------------------


def deposit_to_stability_pool(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    ctx = state.exchange_context
    _require_mode(Operation.DEPOSIT_TO_STABILITY_POOL, ctx.stability_mode)
    snap = state.snapshot
    nav = lp_token_nav(
        ctx.stablecoin_nav(),
        snap.stablecoin_in_pool,
        ctx.levercoin_mint_nav(),
        snap.levercoin_in_pool,
        snap.lp_token_supply,
    )
    amount_out = lp_token_out(amount_in, nav)
    # Deposits carry no fee, so nothing is reported as the fee base either.
    zero = UFix64.zero(Token.HYUSD.exp)
    return OperationOutput(amount_in, amount_out, zero, Token.HYUSD, zero)


def withdraw_from_stability_pool(state: ProtocolState, amount_in: UFix64) -> OperationOutput:
    """LP tokens for stablecoin; only possible while the pool holds no levercoin."""
    ctx = state.exchange_context
    _require_mode(Operation.WITHDRAW_FROM_STABILITY_POOL, ctx.stability_mode)
    snap = state.snapshot
    if not snap.levercoin_in_pool.is_zero():
        raise OperationError(ErrorCode.LEVERCOIN_IN_POOL, f"{snap.levercoin_in_pool} levercoin in pool")
    to_withdraw = amount_token_to_withdraw(amount_in, snap.lp_token_supply, snap.stablecoin_in_pool)
    fee = FeeExtract.new(state.config.withdrawal_fee, to_withdraw)
    return OperationOutput(amount_in, fee.amount_remaining, fee.fees_extracted, Token.HYUSD, to_withdraw)


def withdraw_and_redeem(state: ProtocolState, lst: Token, amount_in: UFix64) -> OperationOutput:
    """
    LP tokens straight to an LST: withdraw both legs pro rata, take the
    withdrawal fee from the stablecoin leg, then redeem each leg.
    """
    ctx = state.exchange_context
    _require_mode(Operation.WITHDRAW_AND_REDEEM, ctx.stability_mode)
    snap = state.snapshot
    stablecoin_to_withdraw = amount_token_to_withdraw(amount_in, snap.lp_token_supply, snap.stablecoin_in_pool)
    levercoin_to_withdraw = amount_token_to_withdraw(amount_in, snap.lp_token_supply, snap.levercoin_in_pool)
    withdrawal = stablecoin_withdrawal_fee(
        snap.stablecoin_in_pool,
        stablecoin_to_withdraw,
        ctx.stablecoin_nav(),
        levercoin_to_withdraw,
        ctx.levercoin_mint_nav(),
        state.config.withdrawal_fee,
    )

    out = UFix64.zero(lst.exp)
    fees = UFix64.zero(lst.exp)
    legs = []
    if not withdrawal.amount_remaining.is_zero():
        legs.append(redeem_stablecoin(state, lst, withdrawal.amount_remaining))
    if not levercoin_to_withdraw.is_zero():
        legs.append(redeem_levercoin(state, lst, levercoin_to_withdraw))
    try:
        for leg in legs:
            out = out.checked_add(leg.amount_out)
            fees = fees.checked_add(leg.fee_amount)
        fee_base = out.checked_add(fees)
    except FixedPointError as exc:
        raise OperationError(ErrorCode.ARITHMETIC_OVERFLOW, str(exc)) from exc
    return OperationOutput(amount_in, out, fees, lst, fee_base)


# ---------------------------------------------------------------------------
# Capability table
# ---------------------------------------------------------------------------

QuoteFn = Callable[[ProtocolState, Token, Token, UFix64], OperationOutput]


def _lst_pairs() -> Dict[Tuple[Token, Token], Tuple[Operation, QuoteFn]]:
    table: Dict[Tuple[Token, Token], Tuple[Operation, QuoteFn]] = {}
    for lst in LSTS:
        table[(lst, Token.HYUSD)] = (Operation.MINT_STABLECOIN, lambda s, i, o, a: mint_stablecoin(s, i, a))
        table[(Token.HYUSD, lst)] = (Operation.REDEEM_STABLECOIN, lambda s, i, o, a: redeem_stablecoin(s, o, a))
        table[(lst, Token.XSOL)] = (Operation.MINT_LEVERCOIN, lambda s, i, o, a: mint_levercoin(s, i, a))
        table[(Token.XSOL, lst)] = (Operation.REDEEM_LEVERCOIN, lambda s, i, o, a: redeem_levercoin(s, o, a))
        table[(Token.SHYUSD, lst)] = (Operation.WITHDRAW_AND_REDEEM, lambda s, i, o, a: withdraw_and_redeem(s, o, a))
        for other in LSTS:
            if other is not lst:
                table[(lst, other)] = (Operation.LST_SWAP, lst_swap)
    return table


PAIRS: Dict[Tuple[Token, Token], Tuple[Operation, QuoteFn]] = {
    **_lst_pairs(),
    (Token.HYUSD, Token.XSOL): (Operation.SWAP_STABLE_TO_LEVER, lambda s, i, o, a: swap_stable_to_lever(s, a)),
    (Token.XSOL, Token.HYUSD): (Operation.SWAP_LEVER_TO_STABLE, lambda s, i, o, a: swap_lever_to_stable(s, a)),
    (Token.HYUSD, Token.SHYUSD): (
        Operation.DEPOSIT_TO_STABILITY_POOL,
        lambda s, i, o, a: deposit_to_stability_pool(s, a),
    ),
    (Token.SHYUSD, Token.HYUSD): (
        Operation.WITHDRAW_FROM_STABILITY_POOL,
        lambda s, i, o, a: withdraw_from_stability_pool(s, a),
    ),
    (Token.XBTC, Token.HYUSD): (Operation.EXO_MINT_STABLECOIN, lambda s, i, o, a: exo_mint_stablecoin(s, a)),
    (Token.HYUSD, Token.XBTC): (Operation.EXO_REDEEM_STABLECOIN, lambda s, i, o, a: exo_redeem_stablecoin(s, a)),
    (Token.XBTC, Token.XBTC_LEVER): (Operation.EXO_MINT_LEVERCOIN, lambda s, i, o, a: exo_mint_levercoin(s, a)),
    (Token.XBTC_LEVER, Token.XBTC): (
        Operation.EXO_REDEEM_LEVERCOIN,
        lambda s, i, o, a: exo_redeem_levercoin(s, a),
    ),
}


def operation_for_pair(token_in: Token, token_out: Token) -> Operation:
    entry = PAIRS.get((token_in, token_out))
    if entry is None:
        raise OperationError(ErrorCode.UNSUPPORTED_PAIR, f"{token_in} -> {token_out}")
    return entry[0]


def compute_output(state: ProtocolState, token_in: Token, token_out: Token, amount_in: UFix64) -> OperationOutput:
    """Quote ``amount_in`` of ``token_in`` into ``token_out`` against ``state``."""
    entry = PAIRS.get((token_in, token_out))
    if entry is None:
        raise OperationError(ErrorCode.UNSUPPORTED_PAIR, f"{token_in} -> {token_out}")
    _require_amount(token_in, amount_in)
    operation, fn = entry
    output = fn(state, token_in, token_out, amount_in)
    logger.debug(
        "%s %s %s -> %s %s (fee %s %s)",
        operation.value,
        output.amount_in,
        token_in,
        output.amount_out,
        token_out,
        output.fee_amount,
        output.fee_mint,
    )
    return output


def quotable_pairs_for_mode(mode: StabilityMode) -> List[Tuple[Token, Token]]:
    """Pairs whose operation is enabled in ``mode``, in table order."""
    return [pair for pair, (operation, _) in PAIRS.items() if operation_allowed_in_mode(operation, mode)]
