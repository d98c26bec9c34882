"""
Core protocol math kernels
"""

from .fix import IFix64, UFix64, N2, N3, N4, N5, N6, N7, N8, N9, Z0
from .clock import Clock, FixedClock
from .oracle import (
    OracleConfig,
    OraclePrice,
    PriceRange,
    PriceSource,
    RawPriceFeed,
    SwitchboardFeed,
    SwitchboardQuote,
    VerificationLevel,
    query_oracle_price,
    query_price_range,
    query_switchboard_price,
)
from .interp import FixInterp, Point
from .stability_mode import StabilityController, StabilityMode, worse_mode
from .fee_controller import FeeExtract, FeePair, LevercoinFees, StablecoinFeeModel, StablecoinFees
from .interpolated_fees import CurveStablecoinFees, InterpolatedMintFees, InterpolatedRedeemFees
from .conversion import Conversion, ExoConversion, SwapConversion
from .rebalance_pricing import BuyPriceCurve, RebalanceCurveConfig, SellPriceCurve
from .slippage import SlippageConfig
from .funding_rate import FundingRateConfig
from .swap_config import AssetSwapConfig, LstSwapConfig

__all__ = [
    "IFix64",
    "UFix64",
    "N2",
    "N3",
    "N4",
    "N5",
    "N6",
    "N7",
    "N8",
    "N9",
    "Z0",
    "Clock",
    "FixedClock",
    "OracleConfig",
    "OraclePrice",
    "PriceRange",
    "PriceSource",
    "RawPriceFeed",
    "SwitchboardFeed",
    "SwitchboardQuote",
    "VerificationLevel",
    "query_oracle_price",
    "query_price_range",
    "query_switchboard_price",
    "FixInterp",
    "Point",
    "StabilityController",
    "StabilityMode",
    "worse_mode",
    "FeeExtract",
    "FeePair",
    "LevercoinFees",
    "StablecoinFeeModel",
    "StablecoinFees",
    "CurveStablecoinFees",
    "InterpolatedMintFees",
    "InterpolatedRedeemFees",
    "Conversion",
    "ExoConversion",
    "SwapConversion",
    "BuyPriceCurve",
    "RebalanceCurveConfig",
    "SellPriceCurve",
    "SlippageConfig",
    "FundingRateConfig",
    "AssetSwapConfig",
    "LstSwapConfig",
]
