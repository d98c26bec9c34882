"""
Token registry.

Every token the engine quotes, with its on-chain mint address (where it is
fixed), decimal exponent and role. Quote amounts are raw integer units at the
token's exponent.
"""

from __future__ import annotations

from enum import Enum, unique
from typing import Optional

from ..core.fix import N6, N8, N9, UFix64


@unique
class TokenKind(Enum):
    STABLECOIN = "stablecoin"
    LEVERCOIN = "levercoin"
    LP_TOKEN = "lp_token"
    LST = "lst"
    EXO_COLLATERAL = "exo_collateral"


@unique
class Token(Enum):
    HYUSD = ("hyUSD", "5YMkXAYccHSGnHn9nob9xEvv6Pvka9DZWH7nTbotTu9E", N6, TokenKind.STABLECOIN)
    XSOL = ("xSOL", "4sWNB8zGWHkh6UnmwiEtzNxL4XrN7uK9tosbESbJFfVs", N6, TokenKind.LEVERCOIN)
    SHYUSD = ("shyUSD", "HnnGv3HrSqjRpgdFmx7vQGjntNEoex1SU4e9Lxcxuihz", N6, TokenKind.LP_TOKEN)
    JITOSOL = ("jitoSOL", "J1toso1uCk3RLmjorhTtrVwY9HJ7X8V9yYac6Y7kGCPn", N9, TokenKind.LST)
    HYLOSOL = ("hyloSOL", "hy1oXYgrBW6PVcJ4s6s2FKavRdwgWTXdfE69AxT7kPT", N9, TokenKind.LST)
    # Exogenous pair mints are deployment-specific; the snapshot's exo pair carries them.
    XBTC = ("xBTC", None, N8, TokenKind.EXO_COLLATERAL)
    XBTC_LEVER = ("xBTC-lever", None, N6, TokenKind.LEVERCOIN)

    def __init__(self, symbol: str, mint: Optional[str], exp: int, kind: TokenKind) -> None:
        self.symbol = symbol
        self.mint = mint
        self.exp = exp
        self.kind = kind

    def amount(self, bits: int) -> UFix64:
        """Raw integer units as a fixed-point amount at this token's exponent."""
        return UFix64(bits, self.exp)

    @property
    def is_lst(self) -> bool:
        return self.kind is TokenKind.LST

    @classmethod
    def from_symbol(cls, symbol: str) -> "Token":
        for token in cls:
            if token.symbol == symbol or token.name == symbol:
                return token
        raise ValueError(f"unknown token: {symbol}")

    @classmethod
    def from_mint(cls, mint: str) -> "Token":
        for token in cls:
            if token.mint is not None and token.mint == mint:
                return token
        raise ValueError(f"unknown mint: {mint}")

    def __str__(self) -> str:
        return self.symbol


LSTS = (Token.JITOSOL, Token.HYLOSOL)
