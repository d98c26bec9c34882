"""
Immutable protocol snapshot and the quote-ready state built from it.

The snapshot is the engine's only input: account-derived values fetched by an
external collaborator, frozen at one point in chain time. Encoding goals:

- A plain JSON-shaped mapping, with LSTs in a fixed order.
- Strict parsing: every amount is a raw integer at its documented exponent.
- Explicit versioning.

``ProtocolState`` validates the snapshot against the oracle and the epoch
caches once, and holds the resulting exchange contexts for every quote taken
against it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional

from ..config import EngineConfig, default_config
from ..core.clock import FixedClock
from ..core.fee_controller import StablecoinFeeModel
from ..core.fix import N6, N9, UFix64
from ..core.oracle import (
    PriceSource,
    RawPriceFeed,
    SwitchboardFeed,
    SwitchboardQuote,
    VerificationLevel,
)
from ..errors import ConfigError, ErrorCode, OperationError
from ..state.lst_sol_price import LstSolPrice
from ..state.total_sol_cache import TotalSolCache
from ..state.virtual_stablecoin import VirtualStablecoin
from .exchange_context import ExoExchangeContext, LstExchangeContext
from .tokens import Token, TokenKind


logger = logging.getLogger(__name__)

PROTOCOL_SNAPSHOT_VERSION = 1


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise TypeError(f"{name} must be an int")
    if value < 0:
        raise ValueError(f"{name} must be non-negative")
    return int(value)


def _require_mapping(value: Any, *, name: str) -> Mapping[str, Any]:
    if not isinstance(value, Mapping):
        raise TypeError(f"{name} must be an object")
    return value


def _amount(value: Any, exp: int, *, name: str) -> UFix64:
    return UFix64(_require_int(value, name=name), exp)


def _token(value: Any, *, name: str, kind: TokenKind) -> Token:
    if not isinstance(value, str):
        raise TypeError(f"{name} must be a string")
    token = Token.from_symbol(value)
    if token.kind is not kind:
        raise ValueError(f"{name}: {token} is not a {kind.value}")
    return token


@dataclass(frozen=True)
class LstHeader:
    """
    Per-LST vault record: the epoch SOL price and the LST held by the protocol.

    ``previous_price_sol`` is the price the current one replaced, when the
    snapshot carries it; the jump between the two is bounded on load.
    """

    token: Token
    price_sol: LstSolPrice
    vault_balance: UFix64
    previous_price_sol: Optional[LstSolPrice] = None

    def __post_init__(self) -> None:
        if not isinstance(self.token, Token) or not self.token.is_lst:
            raise TypeError("token must be an LST")
        if not isinstance(self.vault_balance, UFix64) or self.vault_balance.exp != N9:
            raise TypeError("vault_balance must be a UFix64 at N9")


@dataclass(frozen=True)
class ExoPairSnapshot:
    collateral: Token
    levercoin: Token
    total_collateral: UFix64
    collateral_usd_feed: PriceSource
    virtual_stablecoin: VirtualStablecoin
    levercoin_supply: Optional[UFix64]
    collateral_mint: Optional[str] = None
    levercoin_mint: Optional[str] = None

    def __post_init__(self) -> None:
        if not isinstance(self.total_collateral, UFix64) or self.total_collateral.exp != N9:
            raise TypeError("total_collateral must be a UFix64 at N9")
        for name, mint in (
            ("collateral_mint", self.collateral_mint),
            ("levercoin_mint", self.levercoin_mint),
        ):
            if mint is not None and (not isinstance(mint, str) or not mint):
                raise TypeError(f"{name} must be a non-empty string")


@dataclass(frozen=True)
class ProtocolSnapshot:
    clock: FixedClock
    sol_usd_feed: PriceSource
    total_sol_cache: TotalSolCache
    lst_headers: tuple[LstHeader, ...]
    stablecoin_supply: UFix64
    levercoin_supply: Optional[UFix64]
    lp_token_supply: UFix64
    stablecoin_in_pool: UFix64
    levercoin_in_pool: UFix64
    exo_pair: Optional[ExoPairSnapshot] = None
    version: int = PROTOCOL_SNAPSHOT_VERSION

    def __post_init__(self) -> None:
        for name, v in (
            ("stablecoin_supply", self.stablecoin_supply),
            ("lp_token_supply", self.lp_token_supply),
            ("stablecoin_in_pool", self.stablecoin_in_pool),
            ("levercoin_in_pool", self.levercoin_in_pool),
        ):
            if not isinstance(v, UFix64) or v.exp != N6:
                raise TypeError(f"{name} must be a UFix64 at N6")
        if self.levercoin_supply is not None and self.levercoin_supply.exp != N6:
            raise TypeError("levercoin_supply must be a UFix64 at N6")
        seen = set()
        for header in self.lst_headers:
            if header.token in seen:
                raise ValueError(f"duplicate LST header: {header.token}")
            seen.add(header.token)

    def lst_header(self, token: Token) -> LstHeader:
        for header in self.lst_headers:
            if header.token is token:
                return header
        raise OperationError(ErrorCode.UNKNOWN_LST, str(token))

    def mint_address(self, token: Token) -> str:
        """On-chain mint of ``token``; exogenous pair mints come from the snapshot."""
        mint = token.mint
        pair = self.exo_pair
        if pair is not None and token is pair.collateral:
            mint = pair.collateral_mint
        elif pair is not None and token is pair.levercoin:
            mint = pair.levercoin_mint
        if mint is None:
            raise OperationError(ErrorCode.UNSUPPORTED_PAIR, f"no mint address for {token}")
        return mint

    def token_for_mint(self, mint: str) -> Token:
        pair = self.exo_pair
        if pair is not None:
            if mint == pair.collateral_mint:
                return pair.collateral
            if mint == pair.levercoin_mint:
                return pair.levercoin
        try:
            return Token.from_mint(mint)
        except ValueError as exc:
            raise OperationError(ErrorCode.UNSUPPORTED_PAIR, str(exc)) from exc

    def to_mapping(self) -> Dict[str, Any]:
        def feed(f: PriceSource) -> Dict[str, Any]:
            if isinstance(f, SwitchboardQuote):
                return {
                    "source": "switchboard",
                    "slot": f.slot,
                    "feeds": [{"value": q.value, "std_dev": q.std_dev} for q in f.feeds],
                }
            if not isinstance(f, RawPriceFeed):
                raise TypeError(f"unsupported price source: {type(f).__name__}")
            return {
                "price": f.price,
                "conf": f.conf,
                "exponent": f.exponent,
                "publish_time": f.publish_time,
                "posted_slot": f.posted_slot,
                "verification_level": f.verification_level.value,
            }

        exo: Optional[Dict[str, Any]] = None
        if self.exo_pair is not None:
            p = self.exo_pair
            exo = {
                "collateral": p.collateral.name,
                "levercoin": p.levercoin.name,
                "total_collateral": p.total_collateral.bits,
                "collateral_usd_feed": feed(p.collateral_usd_feed),
                "virtual_stablecoin_supply": p.virtual_stablecoin.supply.bits,
                "levercoin_supply": None if p.levercoin_supply is None else p.levercoin_supply.bits,
                "collateral_mint": p.collateral_mint,
                "levercoin_mint": p.levercoin_mint,
            }

        lsts = [
            {
                "token": h.token.name,
                "price_sol": h.price_sol.price.bits,
                "price_epoch": h.price_sol.epoch,
                "vault_balance": h.vault_balance.bits,
                "previous_price_sol": None if h.previous_price_sol is None else h.previous_price_sol.price.bits,
                "previous_price_epoch": None if h.previous_price_sol is None else h.previous_price_sol.epoch,
            }
            for h in self.lst_headers
        ]
        lsts.sort(key=lambda e: e["token"])

        return {
            "version": self.version,
            "clock": {
                "slot": self.clock.slot,
                "epoch": self.clock.epoch,
                "unix_timestamp": self.clock.unix_timestamp,
            },
            "sol_usd_feed": feed(self.sol_usd_feed),
            "total_sol_cache": {
                "current_update_epoch": self.total_sol_cache.current_update_epoch,
                "total_sol": self.total_sol_cache.total_sol.bits,
            },
            "lsts": lsts,
            "stablecoin_supply": self.stablecoin_supply.bits,
            "levercoin_supply": None if self.levercoin_supply is None else self.levercoin_supply.bits,
            "lp_token_supply": self.lp_token_supply.bits,
            "stablecoin_in_pool": self.stablecoin_in_pool.bits,
            "levercoin_in_pool": self.levercoin_in_pool.bits,
            "exo_pair": exo,
        }


def _switchboard_from_mapping(obj: Mapping[str, Any], *, name: str) -> SwitchboardQuote:
    feeds_raw = obj.get("feeds")
    if not isinstance(feeds_raw, list):
        raise TypeError(f"{name}.feeds must be a list")
    feeds = []
    for i, entry in enumerate(feeds_raw):
        entry = _require_mapping(entry, name=f"{name}.feeds[{i}]")
        value = entry.get("value")
        if not isinstance(value, int) or isinstance(value, bool):
            raise TypeError(f"{name}.feeds[{i}].value must be an int")
        std_dev = _require_int(entry.get("std_dev", 0), name=f"{name}.feeds[{i}].std_dev")
        feeds.append(SwitchboardFeed(value, std_dev))
    return SwitchboardQuote(
        feeds=tuple(feeds), slot=_require_int(obj.get("slot"), name=f"{name}.slot")
    )


def _feed_from_mapping(obj: Any, *, name: str) -> PriceSource:
    obj = _require_mapping(obj, name=name)
    source = obj.get("source", "pyth")
    if source == "switchboard":
        return _switchboard_from_mapping(obj, name=name)
    if source != "pyth":
        raise ValueError(f"{name}: unknown price source {source!r}")
    exponent = obj.get("exponent")
    if not isinstance(exponent, int) or isinstance(exponent, bool):
        raise TypeError(f"{name}.exponent must be an int")
    level_raw = obj.get("verification_level", VerificationLevel.FULL.value)
    try:
        level = VerificationLevel(level_raw)
    except ValueError as exc:
        raise ValueError(f"{name}: invalid verification level {level_raw!r}") from exc
    price = obj.get("price")
    if not isinstance(price, int) or isinstance(price, bool):
        raise TypeError(f"{name}.price must be an int")
    return RawPriceFeed(
        price=price,
        conf=_require_int(obj.get("conf"), name=f"{name}.conf"),
        exponent=exponent,
        publish_time=_require_int(obj.get("publish_time"), name=f"{name}.publish_time"),
        posted_slot=_require_int(obj.get("posted_slot"), name=f"{name}.posted_slot"),
        verification_level=level,
    )


def _optional_amount(value: Any, exp: int, *, name: str) -> Optional[UFix64]:
    if value is None:
        return None
    return _amount(value, exp, name=name)


def _previous_price(entry: Mapping[str, Any]) -> Optional[LstSolPrice]:
    price = entry.get("previous_price_sol")
    epoch = entry.get("previous_price_epoch")
    if price is None and epoch is None:
        return None
    return LstSolPrice(
        price=_amount(price, N9, name="lsts[].previous_price_sol"),
        epoch=_require_int(epoch, name="lsts[].previous_price_epoch"),
    )


def snapshot_from_mapping(obj: Mapping[str, Any]) -> ProtocolSnapshot:
    """Parse the JSON-shaped form produced by ``ProtocolSnapshot.to_mapping``."""
    try:
        obj = _require_mapping(obj, name="snapshot")
        version = obj.get("version", PROTOCOL_SNAPSHOT_VERSION)
        if version != PROTOCOL_SNAPSHOT_VERSION:
            raise ValueError(f"unsupported snapshot version: {version!r}")

        clock_obj = _require_mapping(obj.get("clock"), name="clock")
        clock = FixedClock(
            slot=_require_int(clock_obj.get("slot"), name="clock.slot"),
            epoch=_require_int(clock_obj.get("epoch"), name="clock.epoch"),
            unix_timestamp=_require_int(clock_obj.get("unix_timestamp"), name="clock.unix_timestamp"),
        )

        cache_obj = _require_mapping(obj.get("total_sol_cache"), name="total_sol_cache")
        cache = TotalSolCache(
            current_update_epoch=_require_int(
                cache_obj.get("current_update_epoch"), name="total_sol_cache.current_update_epoch"
            ),
            total_sol=_amount(cache_obj.get("total_sol"), N9, name="total_sol_cache.total_sol"),
        )

        lsts_raw = obj.get("lsts")
        if not isinstance(lsts_raw, list):
            raise TypeError("lsts must be a list")
        headers = []
        for entry in lsts_raw:
            entry = _require_mapping(entry, name="lsts[]")
            headers.append(
                LstHeader(
                    token=_token(entry.get("token"), name="lsts[].token", kind=TokenKind.LST),
                    price_sol=LstSolPrice(
                        price=_amount(entry.get("price_sol"), N9, name="lsts[].price_sol"),
                        epoch=_require_int(entry.get("price_epoch"), name="lsts[].price_epoch"),
                    ),
                    vault_balance=_amount(entry.get("vault_balance", 0), N9, name="lsts[].vault_balance"),
                    previous_price_sol=_previous_price(entry),
                )
            )

        exo_pair = None
        exo_obj = obj.get("exo_pair")
        if exo_obj is not None:
            exo_obj = _require_mapping(exo_obj, name="exo_pair")
            exo_pair = ExoPairSnapshot(
                collateral=_token(
                    exo_obj.get("collateral"), name="exo_pair.collateral", kind=TokenKind.EXO_COLLATERAL
                ),
                levercoin=_token(exo_obj.get("levercoin"), name="exo_pair.levercoin", kind=TokenKind.LEVERCOIN),
                total_collateral=_amount(exo_obj.get("total_collateral"), N9, name="exo_pair.total_collateral"),
                collateral_usd_feed=_feed_from_mapping(
                    exo_obj.get("collateral_usd_feed"), name="exo_pair.collateral_usd_feed"
                ),
                virtual_stablecoin=VirtualStablecoin(
                    _amount(exo_obj.get("virtual_stablecoin_supply"), N6, name="exo_pair.virtual_stablecoin_supply")
                ),
                levercoin_supply=_optional_amount(
                    exo_obj.get("levercoin_supply"), N6, name="exo_pair.levercoin_supply"
                ),
                collateral_mint=exo_obj.get("collateral_mint"),
                levercoin_mint=exo_obj.get("levercoin_mint"),
            )

        return ProtocolSnapshot(
            clock=clock,
            sol_usd_feed=_feed_from_mapping(obj.get("sol_usd_feed"), name="sol_usd_feed"),
            total_sol_cache=cache,
            lst_headers=tuple(headers),
            stablecoin_supply=_amount(obj.get("stablecoin_supply"), N6, name="stablecoin_supply"),
            levercoin_supply=_optional_amount(obj.get("levercoin_supply"), N6, name="levercoin_supply"),
            lp_token_supply=_amount(obj.get("lp_token_supply"), N6, name="lp_token_supply"),
            stablecoin_in_pool=_amount(obj.get("stablecoin_in_pool"), N6, name="stablecoin_in_pool"),
            levercoin_in_pool=_amount(obj.get("levercoin_in_pool"), N6, name="levercoin_in_pool"),
            exo_pair=exo_pair,
            version=version,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(ErrorCode.SNAPSHOT_INVALID, str(exc)) from exc


@dataclass(frozen=True)
class ProtocolState:
    """A validated snapshot plus the exchange contexts derived from it."""

    snapshot: ProtocolSnapshot
    config: EngineConfig
    exchange_context: LstExchangeContext
    exo_context: Optional[ExoExchangeContext] = None

    @classmethod
    def build(
        cls,
        snapshot: ProtocolSnapshot,
        config: Optional[EngineConfig] = None,
        *,
        stablecoin_fees: Optional[StablecoinFeeModel] = None,
        exo_stablecoin_fees: Optional[StablecoinFeeModel] = None,
    ) -> "ProtocolState":
        config = default_config() if config is None else config
        clock = snapshot.clock
        context = LstExchangeContext.load(
            clock,
            snapshot.total_sol_cache,
            snapshot.sol_usd_feed,
            snapshot.stablecoin_supply,
            snapshot.levercoin_supply,
            config,
            stablecoin_fees,
        )
        for header in snapshot.lst_headers:
            if header.previous_price_sol is not None:
                header.price_sol.validate_update(header.previous_price_sol, config.lst_max_relative_delta)
            if header.price_sol.is_stale(clock.epoch, config.lst_max_epoch_age):
                logger.warning(
                    "%s price is from epoch %d, current epoch %d",
                    header.token,
                    header.price_sol.epoch,
                    clock.epoch,
                )

        exo_context = None
        if snapshot.exo_pair is not None:
            pair = snapshot.exo_pair
            exo_context = ExoExchangeContext.load(
                clock,
                pair.total_collateral,
                pair.collateral_usd_feed,
                pair.virtual_stablecoin,
                pair.levercoin_supply,
                config,
                exo_stablecoin_fees,
            )
        return cls(snapshot=snapshot, config=config, exchange_context=context, exo_context=exo_context)

    @classmethod
    def from_mapping(cls, obj: Mapping[str, Any], config: Optional[EngineConfig] = None) -> "ProtocolState":
        return cls.build(snapshot_from_mapping(obj), config)

    def lst_price(self, token: Token) -> LstSolPrice:
        return self.snapshot.lst_header(token).price_sol

    def require_exo(self) -> ExoExchangeContext:
        if self.exo_context is None:
            raise OperationError(ErrorCode.UNSUPPORTED_PAIR, "snapshot has no exogenous collateral pair")
        return self.exo_context
