"""Exception types for the protocol math engine.

Every failure carries an ``ErrorCode`` naming the reason. Callers branch on
``exc.code``; the category subclasses exist so a caller can catch a whole
family (for example every oracle gate) at once.
"""

from __future__ import annotations

from contextlib import contextmanager
from enum import Enum, unique
from typing import Iterator, Type


@unique
class ErrorCode(Enum):
    # fixed point
    ARITHMETIC_OVERFLOW = "arithmetic_overflow"
    ARITHMETIC_UNDERFLOW = "arithmetic_underflow"
    DIVISION_BY_ZERO = "division_by_zero"
    CONVERSION_OVERFLOW = "conversion_overflow"
    SCALE_MISMATCH = "scale_mismatch"

    # oracle
    ORACLE_CONFIDENCE = "oracle_confidence"
    ORACLE_EXPONENT = "oracle_exponent"
    ORACLE_NEGATIVE_PRICE = "oracle_negative_price"
    ORACLE_NEGATIVE_TIME = "oracle_negative_time"
    ORACLE_OUTDATED = "oracle_outdated"
    ORACLE_PRICE_RANGE = "oracle_price_range"
    ORACLE_SLOT_INVALID = "oracle_slot_invalid"
    ORACLE_VERIFICATION_LEVEL = "oracle_verification_level"
    SWITCHBOARD_INVALID_VALUE = "switchboard_invalid_value"
    SWITCHBOARD_PRICE_RANGE = "switchboard_price_range"
    SWITCHBOARD_STALE = "switchboard_stale"

    # interpolation
    INTERP_INSUFFICIENT_POINTS = "interp_insufficient_points"
    INTERP_POINTS_NOT_MONOTONIC = "interp_points_not_monotonic"
    INTERP_OUT_OF_DOMAIN = "interp_out_of_domain"
    INTERP_ARITHMETIC = "interp_arithmetic"
    INTERP_FEE_CONVERSION = "interp_fee_conversion"

    # stability mode
    STABILITY_VALIDATION = "stability_validation"
    NO_NEXT_STABILITY_THRESHOLD = "no_next_stability_threshold"

    # fees
    INVALID_FEES = "invalid_fees"
    FEE_EXTRACTION = "fee_extraction"
    NO_VALID_STABLECOIN_MINT_FEE = "no_valid_stablecoin_mint_fee"
    NO_VALID_STABLECOIN_REDEEM_FEE = "no_valid_stablecoin_redeem_fee"
    NO_VALID_LEVERCOIN_MINT_FEE = "no_valid_levercoin_mint_fee"
    NO_VALID_LEVERCOIN_REDEEM_FEE = "no_valid_levercoin_redeem_fee"
    NO_VALID_SWAP_FEE = "no_valid_swap_fee"
    COLLATERAL_RATIO_CONVERSION = "collateral_ratio_conversion"

    # epoch caches
    EPOCH_ORDER = "epoch_order"
    TOTAL_SOL_CACHE_OVERFLOW = "total_sol_cache_overflow"
    TOTAL_SOL_CACHE_UNDERFLOW = "total_sol_cache_underflow"
    TOTAL_SOL_CACHE_OUTDATED = "total_sol_cache_outdated"
    LST_SOL_PRICE_DELTA = "lst_sol_price_delta"
    LST_SOL_PRICE_EPOCH_ORDER = "lst_sol_price_epoch_order"
    LST_SOL_PRICE_OUTDATED = "lst_sol_price_outdated"
    LST_SOL_PRICE_CONVERSION = "lst_sol_price_conversion"
    LST_LST_PRICE_CONVERSION = "lst_lst_price_conversion"
    MINT_ZERO = "mint_zero"
    MINT_OVERFLOW = "mint_overflow"
    BURN_ZERO = "burn_zero"
    BURN_UNDERFLOW = "burn_underflow"
    YIELD_HARVEST_ALLOCATION = "yield_harvest_allocation"
    YIELD_HARVEST_CONFIG_VALIDATION = "yield_harvest_config_validation"

    # exchange math
    COLLATERAL_RATIO = "collateral_ratio"
    TOTAL_VALUE_LOCKED = "total_value_locked"
    TARGET_COLLATERAL_RATIO_TOO_LOW = "target_collateral_ratio_too_low"
    MAX_MINTABLE = "max_mintable"
    MAX_SWAPPABLE = "max_swappable"
    STABLECOIN_NAV = "stablecoin_nav"
    LEVERCOIN_NAV = "levercoin_nav"
    LST_TO_TOKEN = "lst_to_token"
    TOKEN_TO_LST = "token_to_lst"
    STABLE_TO_LEVER = "stable_to_lever"
    LEVER_TO_STABLE = "lever_to_stable"
    EXO_TO_TOKEN = "exo_to_token"
    TOKEN_TO_EXO = "token_to_exo"
    EXO_UPCONVERT = "exo_upconvert"
    DESTINATION_FEE_SOL = "destination_fee_sol"
    DESTINATION_FEE_STABLECOIN = "destination_fee_stablecoin"
    EXO_DESTINATION_COLLATERAL = "exo_destination_collateral"
    EXO_DESTINATION_STABLECOIN = "exo_destination_stablecoin"
    REQUESTED_STABLECOIN_OVER_MAX_MINTABLE = "requested_stablecoin_over_max_mintable"

    # stability pool
    STABILITY_POOL_CAP = "stability_pool_cap"
    LP_TOKEN_NAV = "lp_token_nav"
    LP_TOKEN_OUT = "lp_token_out"
    TOKEN_WITHDRAW = "token_withdraw"
    STABLECOIN_TO_SWAP = "stablecoin_to_swap"

    # rebalance
    REBALANCE_CURVE_CONFIG_VALIDATION = "rebalance_curve_config_validation"
    REBALANCE_PRICE_CONVERSION = "rebalance_price_conversion"
    REBALANCE_PRICE_CONSTRUCTION = "rebalance_price_construction"
    REBALANCE_SELL_INACTIVE = "rebalance_sell_inactive"
    REBALANCE_BUY_INACTIVE = "rebalance_buy_inactive"

    # slippage / funding
    SLIPPAGE_ARITHMETIC = "slippage_arithmetic"
    SLIPPAGE_EXCEEDED = "slippage_exceeded"
    FUNDING_RATE_APPLY = "funding_rate_apply"
    FUNDING_RATE_VALIDATION = "funding_rate_validation"

    # composition
    UNSUPPORTED_PAIR = "unsupported_pair"
    OPERATION_DISABLED = "operation_disabled"
    LEVERCOIN_IN_POOL = "levercoin_in_pool"
    UNKNOWN_LST = "unknown_lst"
    SNAPSHOT_INVALID = "snapshot_invalid"

    # configuration
    CONFIG_VALIDATION = "config_validation"


class CoreError(Exception):
    """Base class for every engine failure."""

    def __init__(self, code: ErrorCode, detail: str | None = None) -> None:
        self.code = code
        self.detail = detail
        msg = code.value if detail is None else f"{code.value}: {detail}"
        super().__init__(msg)


class FixedPointError(CoreError):
    """Checked fixed-point arithmetic failed."""


class OracleError(CoreError):
    """An oracle feed failed one of the validation gates."""


class InterpolationError(CoreError):
    pass


class StabilityError(CoreError):
    pass


class FeeError(CoreError):
    pass


class EpochError(CoreError):
    """Epoch ordering or staleness violation in a cached aggregate."""


class ExchangeMathError(CoreError):
    pass


class StabilityPoolError(CoreError):
    pass


class RebalanceError(CoreError):
    pass


class SlippageError(CoreError):
    pass


class OperationError(CoreError):
    """A token-pair operation is unsupported or disabled."""


class ConfigError(CoreError):
    pass


@contextmanager
def reraise_as(error_type: Type[CoreError], code: ErrorCode) -> Iterator[None]:
    """Translate a fixed-point failure inside the block into a domain error."""
    try:
        yield
    except FixedPointError as exc:
        raise error_type(code, str(exc)) from exc
