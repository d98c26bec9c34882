from __future__ import annotations

import pytest

from hylo_engine.core.fix import N6, N9, U64_MAX, UFix64
from hylo_engine.errors import EpochError, ErrorCode
from hylo_engine.state.virtual_stablecoin import VirtualStablecoin


def test_mint_and_burn() -> None:
    coin = VirtualStablecoin().mint(UFix64(10_000_000, N6)).burn(UFix64(3_000_000, N6))
    assert coin.supply == UFix64(7_000_000, N6)


@pytest.mark.parametrize(
    "op,code",
    [("mint", ErrorCode.MINT_ZERO), ("burn", ErrorCode.BURN_ZERO)],
)
def test_zero_amounts_rejected(op: str, code: ErrorCode) -> None:
    coin = VirtualStablecoin(UFix64(5, N6))
    with pytest.raises(EpochError) as exc:
        getattr(coin, op)(UFix64(0, N6))
    assert exc.value.code is code


def test_bounds() -> None:
    with pytest.raises(EpochError) as exc:
        VirtualStablecoin(UFix64(U64_MAX, N6)).mint(UFix64(1, N6))
    assert exc.value.code is ErrorCode.MINT_OVERFLOW
    with pytest.raises(EpochError) as exc:
        VirtualStablecoin(UFix64(1, N6)).burn(UFix64(2, N6))
    assert exc.value.code is ErrorCode.BURN_UNDERFLOW


def test_supply_must_be_n6() -> None:
    with pytest.raises(TypeError):
        VirtualStablecoin(UFix64(1, N9))
