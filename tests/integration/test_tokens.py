from __future__ import annotations

import pytest

from hylo_engine.core.fix import N6, N8, N9, UFix64
from hylo_engine.integration.tokens import LSTS, Token, TokenKind


def test_registry_exponents() -> None:
    assert Token.HYUSD.exp == N6
    assert Token.JITOSOL.exp == N9
    assert Token.XBTC.exp == N8
    assert Token.SHYUSD.kind is TokenKind.LP_TOKEN


def test_lookup_by_symbol_and_mint() -> None:
    assert Token.from_symbol("hyUSD") is Token.HYUSD
    assert Token.from_symbol("JITOSOL") is Token.JITOSOL
    assert Token.from_mint(Token.XSOL.mint) is Token.XSOL
    with pytest.raises(ValueError):
        Token.from_symbol("USDC")
    with pytest.raises(ValueError):
        Token.from_mint("not-a-mint")


def test_exo_tokens_have_no_fixed_mint() -> None:
    assert Token.XBTC.mint is None
    assert Token.XBTC_LEVER.mint is None
    assert Token.from_mint(Token.HYLOSOL.mint) is Token.HYLOSOL


def test_amount_and_str() -> None:
    assert Token.JITOSOL.amount(5) == UFix64(5, N9)
    assert str(Token.HYLOSOL) == "hyloSOL"


def test_lsts() -> None:
    assert all(t.is_lst for t in LSTS)
    assert not Token.HYUSD.is_lst
