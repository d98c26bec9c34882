"""
Oracle price validation kernel.

Turns a raw push-oracle price update into a validated ``OraclePrice``. Every
gate is a hard failure; there is no partial success. Switchboard pull quotes
go through their own gates and yield the same ``PriceRange``; both implement
``PriceSource``.

Push-oracle gate order:
1. verification level must be FULL
2. publish time inside ``[now - interval, now]``
3. posted slot inside the slot-equivalent window
4. price positive, exponent supported, normalization to N9 without overflow
5. ``conf / price <= conf_tolerance``
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, unique
from typing import Protocol

from ..errors import ErrorCode, FixedPointError, OracleError
from .clock import Clock
from .fix import N2, N9, U64_MAX, Z0, UFix64


SUPPORTED_EXPONENTS = range(-9, -1)

# 400ms slots.
SLOT_TIME = UFix64(40, N2)

# Switchboard counts staleness in 200ms slots and posts 18-decimal values.
SWITCHBOARD_SLOT_TIME = UFix64(20, N2)
SWITCHBOARD_SCALE = 18


@unique
class VerificationLevel(Enum):
    PARTIAL = "partial"
    FULL = "full"


@dataclass(frozen=True)
class OracleConfig:
    interval_secs: int
    conf_tolerance: UFix64

    def __post_init__(self) -> None:
        if not isinstance(self.interval_secs, int) or isinstance(self.interval_secs, bool):
            raise TypeError("interval_secs must be an int")
        if self.interval_secs <= 0:
            raise ValueError(f"interval_secs must be positive: {self.interval_secs}")
        if not isinstance(self.conf_tolerance, UFix64) or self.conf_tolerance.exp != N9:
            raise TypeError("conf_tolerance must be a UFix64 at N9")


@dataclass(frozen=True)
class RawPriceFeed:
    """Price update as posted by the oracle program, before any validation."""

    price: int
    conf: int
    exponent: int
    publish_time: int
    posted_slot: int
    verification_level: VerificationLevel = VerificationLevel.FULL

    def __post_init__(self) -> None:
        for name, v in (
            ("price", self.price),
            ("conf", self.conf),
            ("exponent", self.exponent),
            ("publish_time", self.publish_time),
            ("posted_slot", self.posted_slot),
        ):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.conf < 0 or self.posted_slot < 0:
            raise ValueError("conf and posted_slot must be non-negative")
        if not isinstance(self.verification_level, VerificationLevel):
            raise TypeError("verification_level must be a VerificationLevel")

    def query_price(self, clock: Clock, config: OracleConfig, exp: int = N9) -> "PriceRange":
        return query_price_range(clock, self, config, exp)


@dataclass(frozen=True)
class PriceRange:
    """Conservative bid/ask bracket, ``lower <= upper``."""

    lower: UFix64
    upper: UFix64

    def __post_init__(self) -> None:
        if self.lower > self.upper:
            raise ValueError("lower must not exceed upper")

    @classmethod
    def from_conf(cls, price: UFix64, conf: UFix64) -> "PriceRange":
        try:
            return cls(price.checked_sub(conf), price.checked_add(conf))
        except FixedPointError as exc:
            raise OracleError(ErrorCode.ORACLE_PRICE_RANGE, str(exc)) from exc

    @classmethod
    def one(cls, price: UFix64) -> "PriceRange":
        return cls(price, price)

    def convert(self, exp: int) -> "PriceRange":
        try:
            return PriceRange(self.lower.convert(exp), self.upper.convert(exp))
        except FixedPointError as exc:
            raise OracleError(ErrorCode.ORACLE_PRICE_RANGE, str(exc)) from exc


@dataclass(frozen=True)
class OraclePrice:
    spot: UFix64
    conf: UFix64

    def price_range(self) -> PriceRange:
        return PriceRange.from_conf(self.spot, self.conf)


class PriceSource(Protocol):
    """Anything that yields a validated USD price bracket for the collateral."""

    def query_price(self, clock: Clock, config: OracleConfig, exp: int = N9) -> PriceRange:
        ...


@dataclass(frozen=True)
class SwitchboardFeed:
    """One feed of a Switchboard quote, as decimal mantissas at scale 18."""

    value: int
    std_dev: int = 0

    def __post_init__(self) -> None:
        for name, v in (("value", self.value), ("std_dev", self.std_dev)):
            if not isinstance(v, int) or isinstance(v, bool):
                raise TypeError(f"{name} must be an int")
        if self.std_dev < 0:
            raise ValueError("std_dev must be non-negative")


@dataclass(frozen=True)
class SwitchboardQuote:
    feeds: tuple[SwitchboardFeed, ...]
    slot: int

    def __post_init__(self) -> None:
        if not all(isinstance(f, SwitchboardFeed) for f in self.feeds):
            raise TypeError("feeds must be SwitchboardFeed values")
        if not isinstance(self.slot, int) or isinstance(self.slot, bool) or self.slot < 0:
            raise TypeError("slot must be a non-negative int")

    def query_price(self, clock: Clock, config: OracleConfig, exp: int = N9) -> PriceRange:
        return query_switchboard_price(clock, self, config, exp)


# ---------------------------------------------------------------------------
# Gates
# ---------------------------------------------------------------------------


def slot_interval(interval_secs: int, slot_time: UFix64 = SLOT_TIME) -> int:
    """Number of slots equivalent to ``interval_secs``."""
    time = UFix64(interval_secs, Z0).convert(N2)
    return time.checked_div(slot_time).bits


def validate_verification_level(level: VerificationLevel) -> None:
    if level is not VerificationLevel.FULL:
        raise OracleError(ErrorCode.ORACLE_VERIFICATION_LEVEL, level.value)


def validate_publish_time(publish_time: int, interval_secs: int, clock_time: int) -> None:
    """Accept ``now - interval <= publish_time <= now``, both bounds inclusive."""
    if publish_time <= 0 or clock_time <= 0:
        raise OracleError(ErrorCode.ORACLE_NEGATIVE_TIME)
    if publish_time + interval_secs < clock_time:
        raise OracleError(
            ErrorCode.ORACLE_OUTDATED, f"published {publish_time}, now {clock_time}"
        )
    if publish_time > clock_time:
        raise OracleError(
            ErrorCode.ORACLE_OUTDATED, f"published {publish_time} after now {clock_time}"
        )


def validate_posted_slot(posted_slot: int, interval_secs: int, current_slot: int) -> None:
    delta = current_slot - posted_slot
    if delta < 0 or delta > slot_interval(interval_secs):
        raise OracleError(
            ErrorCode.ORACLE_SLOT_INVALID, f"posted {posted_slot}, current {current_slot}"
        )


def normalize_price(value: int, exponent: int) -> UFix64:
    """Rescale an oracle magnitude at ``10**exponent`` to N9."""
    if exponent not in SUPPORTED_EXPONENTS:
        raise OracleError(ErrorCode.ORACLE_EXPONENT, f"unsupported exponent {exponent}")
    try:
        return UFix64(value, exponent).convert(N9)
    except (FixedPointError, ValueError) as exc:
        raise OracleError(ErrorCode.ORACLE_EXPONENT, str(exc)) from exc


def validate_price(price: int, exponent: int) -> UFix64:
    if price <= 0:
        raise OracleError(ErrorCode.ORACLE_NEGATIVE_PRICE, str(price))
    return normalize_price(price, exponent)


def validate_conf(price: UFix64, conf: UFix64, tolerance: UFix64) -> UFix64:
    try:
        ratio = conf.mul_div_floor(UFix64.one(N9), price)
    except FixedPointError as exc:
        raise OracleError(ErrorCode.ORACLE_CONFIDENCE, str(exc)) from exc
    if ratio > tolerance:
        raise OracleError(ErrorCode.ORACLE_CONFIDENCE, f"{ratio} > {tolerance}")
    return conf


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------


def query_oracle_price(clock: Clock, feed: RawPriceFeed, config: OracleConfig) -> OraclePrice:
    """Run every gate and return the validated spot price and confidence at N9."""
    validate_verification_level(feed.verification_level)
    validate_publish_time(feed.publish_time, config.interval_secs, clock.unix_timestamp)
    validate_posted_slot(feed.posted_slot, config.interval_secs, clock.slot)
    spot = validate_price(feed.price, feed.exponent)
    conf = normalize_price(feed.conf, feed.exponent)
    validate_conf(spot, conf, config.conf_tolerance)
    return OraclePrice(spot=spot, conf=conf)


def query_price_range(
    clock: Clock, feed: RawPriceFeed, config: OracleConfig, exp: int = N9
) -> PriceRange:
    """Validated ``spot -/+ conf`` bracket at the requested exponent."""
    return query_oracle_price(clock, feed, config).price_range().convert(exp)


# ---------------------------------------------------------------------------
# Switchboard
# ---------------------------------------------------------------------------


def validate_switchboard_staleness(quote_slot: int, interval_secs: int, current_slot: int) -> None:
    """A quote from a future slot counts as fresh."""
    window = slot_interval(interval_secs, SWITCHBOARD_SLOT_TIME)
    if current_slot - quote_slot > window:
        raise OracleError(
            ErrorCode.SWITCHBOARD_STALE, f"quote slot {quote_slot}, current {current_slot}"
        )


def switchboard_decimal_to_fixed(mantissa: int, exp: int) -> UFix64:
    """Rescale an 18-decimal mantissa to ``exp``, truncating."""
    if mantissa < 0:
        raise OracleError(ErrorCode.SWITCHBOARD_INVALID_VALUE, f"negative value {mantissa}")
    if not (-SWITCHBOARD_SCALE <= exp <= 0):
        raise OracleError(ErrorCode.SWITCHBOARD_PRICE_RANGE, f"exponent {exp}")
    bits = mantissa // 10 ** (SWITCHBOARD_SCALE + exp)
    if bits > U64_MAX:
        raise OracleError(ErrorCode.SWITCHBOARD_PRICE_RANGE, f"{mantissa} at e{exp}")
    return UFix64(bits, exp)


def validate_switchboard_variance(feed: SwitchboardFeed, tolerance: UFix64) -> None:
    ratio = feed.std_dev * UFix64.one(N9).bits // feed.value
    if ratio > tolerance.bits:
        raise OracleError(
            ErrorCode.ORACLE_CONFIDENCE, f"std_dev {feed.std_dev} of {feed.value} > {tolerance}"
        )


def query_switchboard_price(
    clock: Clock, quote: SwitchboardQuote, config: OracleConfig, exp: int = N9
) -> PriceRange:
    """Validated bracket from the first feed of a Switchboard quote.

    Switchboard publishes no confidence interval, so the bracket collapses to
    the spot price. A feed's ``std_dev`` only gates acceptance against the
    configured confidence tolerance.
    """
    validate_switchboard_staleness(quote.slot, config.interval_secs, clock.slot)
    if not quote.feeds:
        raise OracleError(ErrorCode.SWITCHBOARD_INVALID_VALUE, "quote has no feeds")
    feed = quote.feeds[0]
    spot = switchboard_decimal_to_fixed(feed.value, exp)
    if spot.is_zero():
        raise OracleError(ErrorCode.SWITCHBOARD_INVALID_VALUE, f"zero price at e{exp}")
    validate_switchboard_variance(feed, config.conf_tolerance)
    return PriceRange.from_conf(spot, UFix64.zero(exp))
