from __future__ import annotations

from typing import Callable

import pytest

from hylo_engine.core.fix import N6, N8, N9, UFix64
from hylo_engine.core.stability_mode import StabilityMode
from hylo_engine.errors import ErrorCode, FeeError, OperationError
from hylo_engine.integration.operations import (
    PAIRS,
    Operation,
    compute_output,
    operation_allowed_in_mode,
    operation_for_pair,
    quotable_pairs_for_mode,
)
from hylo_engine.integration.protocol_snapshot import ProtocolState
from hylo_engine.integration.tokens import Token


MODE_1_SUPPLY = 110_000_000_000_000
MODE_2_SUPPLY = 130_000_000_000_000
DEPEG_SUPPLY = 160_000_000_000_000


def _quote(state: ProtocolState, token_in: Token, token_out: Token, bits: int):
    return compute_output(state, token_in, token_out, token_in.amount(bits))


# ---------------------------------------------------------------------------
# LST exchange
# ---------------------------------------------------------------------------

def test_mint_stablecoin(state: ProtocolState) -> None:
    out = _quote(state, Token.JITOSOL, Token.HYUSD, 10_000_000_000)
    assert out.amount_out == UFix64(1_797_300_900, N6)
    assert out.fee_amount == UFix64(10_000_000, N9)
    assert out.fee_mint is Token.JITOSOL
    assert out.fee_base == UFix64(10_000_000_000, N9)


def test_redeem_stablecoin(state: ProtocolState) -> None:
    out = _quote(state, Token.HYUSD, Token.JITOSOL, 1_000_000_000)
    assert out.fee_base == UFix64(5_552_779_165, N9)
    assert out.fee_amount == UFix64(5_552_780, N9)
    assert out.amount_out == UFix64(5_547_226_385, N9)
    assert out.fee_mint is Token.JITOSOL


def test_mint_levercoin(state: ProtocolState) -> None:
    out = _quote(state, Token.JITOSOL, Token.XSOL, 10_000_000_000)
    assert out.fee_amount == UFix64(50_000_000, N9)
    assert out.amount_out == UFix64(510_911_023, N6)


def test_redeem_levercoin_pays_lower_nav(state: ProtocolState) -> None:
    out = _quote(state, Token.XSOL, Token.JITOSOL, 100_000_000)
    # 100 xSOL at the redeem NAV of 3.49625, in SOL at the upper price.
    assert out.fee_base == UFix64(1_941_390_415, N9)
    assert out.fee_amount.checked_add(out.amount_out) == out.fee_base


def test_swap_stable_to_lever(state: ProtocolState) -> None:
    out = _quote(state, Token.HYUSD, Token.XSOL, 1_000_000_000)
    assert out.fee_amount == UFix64(5_000_000, N6)
    assert out.amount_out == UFix64(283_981_448, N6)
    assert out.fee_mint is Token.HYUSD


def test_swap_lever_to_stable(state: ProtocolState) -> None:
    out = _quote(state, Token.XSOL, Token.HYUSD, 100_000_000)
    assert out.fee_base == UFix64(349_625_000, N6)
    assert out.fee_amount == UFix64(1_748_125, N6)
    assert out.amount_out == UFix64(347_876_875, N6)


def test_lst_swap(state: ProtocolState) -> None:
    out = _quote(state, Token.JITOSOL, Token.HYLOSOL, 10_000_000_000)
    assert out.fee_amount == UFix64(5_000_000, N9)
    assert out.amount_out == UFix64(10_903_636_363, N9)
    assert out.fee_mint is Token.JITOSOL


def test_mint_into_mode_2_has_no_fee(state: ProtocolState) -> None:
    # 1.2M SOL of new collateral for ~$180M of stablecoin lands the ratio near 1.27.
    with pytest.raises(FeeError) as exc:
        _quote(state, Token.JITOSOL, Token.HYUSD, 1_000_000_000_000_000)
    assert exc.value.code is ErrorCode.NO_VALID_STABLECOIN_MINT_FEE


# ---------------------------------------------------------------------------
# Stability pool
# ---------------------------------------------------------------------------

def test_deposit(state: ProtocolState) -> None:
    out = _quote(state, Token.HYUSD, Token.SHYUSD, 1_050_000_000)
    assert out.amount_out == UFix64(1_000_000_000, N6)
    assert out.fee_amount.is_zero()
    assert out.fee_base.is_zero()
    assert out.fee_mint is Token.HYUSD


def test_deposit_allowed_in_mode_2_but_not_depeg(make_state: Callable[..., ProtocolState]) -> None:
    mode_2 = make_state(stablecoin_supply=MODE_2_SUPPLY)
    assert mode_2.exchange_context.stability_mode is StabilityMode.MODE_2
    assert _quote(mode_2, Token.HYUSD, Token.SHYUSD, 1_000_000).fee_base.is_zero()

    depeg = make_state(stablecoin_supply=160_000_000_000_000)
    with pytest.raises(OperationError) as exc:
        _quote(depeg, Token.HYUSD, Token.SHYUSD, 1_000_000)
    assert exc.value.code is ErrorCode.OPERATION_DISABLED


def test_withdraw(state: ProtocolState) -> None:
    out = _quote(state, Token.SHYUSD, Token.HYUSD, 1_000_000_000)
    assert out.fee_base == UFix64(1_050_000_000, N6)
    assert out.fee_amount == UFix64(1_050_000, N6)
    assert out.amount_out == UFix64(1_048_950_000, N6)


def test_withdraw_blocked_while_pool_holds_levercoin(make_state: Callable[..., ProtocolState]) -> None:
    state = make_state(levercoin_in_pool=1_000_000)
    with pytest.raises(OperationError) as exc:
        _quote(state, Token.SHYUSD, Token.HYUSD, 1_000_000_000)
    assert exc.value.code is ErrorCode.LEVERCOIN_IN_POOL


def test_withdraw_and_redeem_matches_legs(state: ProtocolState) -> None:
    out = _quote(state, Token.SHYUSD, Token.JITOSOL, 1_000_000_000)
    # 1050 hyUSD withdrawn, 1.05 hyUSD fee, the rest redeemed.
    leg = _quote(state, Token.HYUSD, Token.JITOSOL, 1_048_950_000)
    assert out.amount_out == leg.amount_out
    assert out.fee_amount == leg.fee_amount
    assert out.fee_base == out.amount_out.checked_add(out.fee_amount)


def test_withdraw_and_redeem_with_levercoin_leg(make_state: Callable[..., ProtocolState]) -> None:
    state = make_state(levercoin_in_pool=1_000_000_000_000)
    out = _quote(state, Token.SHYUSD, Token.JITOSOL, 1_000_000_000)
    stable_only = _quote(make_state(), Token.SHYUSD, Token.JITOSOL, 1_000_000_000)
    assert out.amount_out > stable_only.amount_out


# ---------------------------------------------------------------------------
# Exogenous collateral
# ---------------------------------------------------------------------------

def test_exo_mint_stablecoin(state: ProtocolState) -> None:
    out = _quote(state, Token.XBTC, Token.HYUSD, 100_000_000)
    assert out.amount_out == UFix64(99_950_000_000, N6)
    assert out.fee_amount == UFix64(0, N9)
    assert out.fee_base == UFix64(1_000_000_000, N9)


def test_exo_redeem_stablecoin(state: ProtocolState) -> None:
    out = _quote(state, Token.HYUSD, Token.XBTC, 1_000_000_000)
    assert out.fee_base == UFix64(9_995_002, N9)
    assert out.fee_amount.bits > 0
    assert out.amount_out.exp == N8
    assert out.amount_out == out.fee_base.checked_sub(out.fee_amount).convert(N8)


def test_exo_levercoin_round_trip_loses_fees(state: ProtocolState) -> None:
    minted = _quote(state, Token.XBTC, Token.XBTC_LEVER, 100_000_000)
    assert minted.fee_amount == UFix64(5_000_000, N9)
    back = compute_output(state, Token.XBTC_LEVER, Token.XBTC, minted.amount_out)
    assert back.amount_out < UFix64(100_000_000, N8)


def test_exo_pairs_need_exo_snapshot(make_state: Callable[..., ProtocolState]) -> None:
    with pytest.raises(OperationError) as exc:
        _quote(make_state(exo_pair=None), Token.XBTC, Token.HYUSD, 100_000_000)
    assert exc.value.code is ErrorCode.UNSUPPORTED_PAIR


# ---------------------------------------------------------------------------
# Modes
# ---------------------------------------------------------------------------

def test_mode_1_fees(make_state: Callable[..., ProtocolState]) -> None:
    state = make_state(stablecoin_supply=MODE_1_SUPPLY)
    assert _quote(state, Token.JITOSOL, Token.HYUSD, 10_000_000_000).fee_amount == UFix64(50_000_000, N9)
    assert _quote(state, Token.XSOL, Token.HYUSD, 100_000_000).fee_base.bits > 0


@pytest.mark.parametrize(
    "supply,pair",
    [
        (MODE_2_SUPPLY, (Token.JITOSOL, Token.HYUSD)),
        (MODE_2_SUPPLY, (Token.XSOL, Token.HYUSD)),
        (DEPEG_SUPPLY, (Token.JITOSOL, Token.XSOL)),
        (DEPEG_SUPPLY, (Token.HYUSD, Token.SHYUSD)),
        (DEPEG_SUPPLY, (Token.SHYUSD, Token.JITOSOL)),
    ],
)
def test_disabled_operations(make_state: Callable[..., ProtocolState], supply: int, pair) -> None:
    state = make_state(stablecoin_supply=supply)
    token_in, token_out = pair
    with pytest.raises(OperationError) as exc:
        _quote(state, token_in, token_out, 10 ** -token_in.exp)
    assert exc.value.code is ErrorCode.OPERATION_DISABLED


def test_depeg_redeem_at_reduced_nav(make_state: Callable[..., ProtocolState], state: ProtocolState) -> None:
    depeg = make_state(stablecoin_supply=DEPEG_SUPPLY)
    out = _quote(depeg, Token.HYUSD, Token.JITOSOL, 1_000_000_000)
    assert out.fee_amount.is_zero()
    assert out.amount_out < _quote(state, Token.HYUSD, Token.JITOSOL, 1_000_000_000).amount_out
    # LST swaps and pool withdrawals stay open.
    _quote(depeg, Token.JITOSOL, Token.HYLOSOL, 10_000_000_000)
    _quote(depeg, Token.SHYUSD, Token.HYUSD, 1_000_000)


def test_mode_availability_table() -> None:
    assert operation_allowed_in_mode(Operation.REDEEM_STABLECOIN, StabilityMode.DEPEG)
    assert not operation_allowed_in_mode(Operation.MINT_STABLECOIN, StabilityMode.MODE_2)
    assert operation_allowed_in_mode(Operation.SWAP_STABLE_TO_LEVER, StabilityMode.MODE_2)
    assert not operation_allowed_in_mode(Operation.SWAP_LEVER_TO_STABLE, StabilityMode.MODE_2)


# ---------------------------------------------------------------------------
# Dispatch
# ---------------------------------------------------------------------------

def test_unsupported_pairs() -> None:
    for pair in ((Token.HYUSD, Token.HYUSD), (Token.XSOL, Token.SHYUSD), (Token.XBTC, Token.XSOL)):
        with pytest.raises(OperationError) as exc:
            operation_for_pair(*pair)
        assert exc.value.code is ErrorCode.UNSUPPORTED_PAIR


def test_pair_lookup() -> None:
    assert operation_for_pair(Token.HYLOSOL, Token.JITOSOL) is Operation.LST_SWAP
    assert operation_for_pair(Token.SHYUSD, Token.HYLOSOL) is Operation.WITHDRAW_AND_REDEEM


def test_amount_scale_checked(state: ProtocolState) -> None:
    with pytest.raises(ValueError):
        compute_output(state, Token.JITOSOL, Token.HYUSD, UFix64(1, N6))
    with pytest.raises(TypeError):
        compute_output(state, Token.JITOSOL, Token.HYUSD, 1)


def test_quotable_pairs_for_mode() -> None:
    assert quotable_pairs_for_mode(StabilityMode.NORMAL) == list(PAIRS)
    assert len(PAIRS) == 20
    depeg = quotable_pairs_for_mode(StabilityMode.DEPEG)
    assert len(depeg) == 6
    assert (Token.HYUSD, Token.JITOSOL) in depeg
    assert (Token.JITOSOL, Token.HYUSD) not in depeg
