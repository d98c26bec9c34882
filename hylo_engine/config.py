"""
Engine configuration.

``data/engine_defaults.yaml`` ships the oracle, stability, fee-table and
guard defaults. ``EngineConfig`` is the typed view of that document;
``EngineConfig.with_overrides`` replaces whole sections for a deployment.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Mapping

from .core.fee_controller import FeePair, LevercoinFees, StablecoinFees
from .core.fix import N2, N4, N9, UFix64
from .core.oracle import OracleConfig
from .core.rebalance_pricing import RebalanceCurveConfig
from .core.stability_mode import StabilityController
from .core.swap_config import LstSwapConfig
from .data import load_document
from .errors import ConfigError, CoreError, ErrorCode
from .state.yields import YieldHarvestConfig


logger = logging.getLogger(__name__)

DEFAULTS_DOCUMENT = "engine_defaults.yaml"


def _require_int(value: Any, *, name: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool):
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must be an int")
    if value < 0:
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must be non-negative")
    return value


def _section(doc: Mapping[str, Any], name: str) -> Mapping[str, Any]:
    value = doc.get(name)
    if not isinstance(value, Mapping):
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must be a mapping")
    return value


def _fee_pair(obj: Any, *, name: str) -> FeePair:
    if not isinstance(obj, Mapping):
        raise ConfigError(ErrorCode.CONFIG_VALIDATION, f"{name} must be a mapping")
    return FeePair.from_bps(
        _require_int(obj.get("mint"), name=f"{name}.mint"),
        _require_int(obj.get("redeem"), name=f"{name}.redeem"),
    )


@dataclass(frozen=True)
class EngineConfig:
    oracle: OracleConfig
    stability_threshold_1: UFix64
    stability_threshold_2: UFix64
    depeg_floor: UFix64
    stablecoin_fees: StablecoinFees
    levercoin_fees: LevercoinFees
    lst_swap: LstSwapConfig
    withdrawal_fee: UFix64
    lst_max_relative_delta: UFix64
    lst_max_epoch_age: int
    rebalance_curve: RebalanceCurveConfig
    yield_harvest: YieldHarvestConfig

    @classmethod
    def from_mapping(cls, doc: Mapping[str, Any]) -> "EngineConfig":
        try:
            oracle = _section(doc, "oracle")
            stability = _section(doc, "stability")
            stable = _section(doc, "stablecoin_fees")
            lever = _section(doc, "levercoin_fees")
            lst_price = _section(doc, "lst_price")
            rebalance = _section(doc, "rebalance_curve")
            harvest = _section(doc, "yield_harvest")

            stablecoin_fees = StablecoinFees(
                normal=_fee_pair(stable.get("normal"), name="stablecoin_fees.normal"),
                mode_1=_fee_pair(stable.get("mode_1"), name="stablecoin_fees.mode_1"),
            )
            levercoin_fees = LevercoinFees(
                normal=_fee_pair(lever.get("normal"), name="levercoin_fees.normal"),
                mode_1=_fee_pair(lever.get("mode_1"), name="levercoin_fees.mode_1"),
                mode_2=_fee_pair(lever.get("mode_2"), name="levercoin_fees.mode_2"),
            )
            stablecoin_fees.validate()
            levercoin_fees.validate()

            withdrawal_fee = UFix64(
                _require_int(doc.get("stability_pool_withdrawal_fee"), name="stability_pool_withdrawal_fee"),
                N4,
            )
            if not withdrawal_fee < UFix64.one(N4):
                raise ConfigError(ErrorCode.CONFIG_VALIDATION, "withdrawal fee must be below 1")

            rebalance_curve = RebalanceCurveConfig(
                floor_mult=UFix64(_require_int(rebalance.get("floor_mult"), name="rebalance_curve.floor_mult"), N2),
                ceil_mult=UFix64(_require_int(rebalance.get("ceil_mult"), name="rebalance_curve.ceil_mult"), N2),
            )
            rebalance_curve.validate()

            yield_harvest = YieldHarvestConfig(
                allocation=UFix64(_require_int(harvest.get("allocation"), name="yield_harvest.allocation"), N4),
                fee=UFix64(_require_int(harvest.get("fee"), name="yield_harvest.fee"), N4),
            )
            yield_harvest.validate()

            lst_swap = LstSwapConfig(UFix64(_require_int(doc.get("lst_swap_fee"), name="lst_swap_fee"), N4))
            lst_swap.validate()

            cfg = cls(
                oracle=OracleConfig(
                    interval_secs=_require_int(oracle.get("interval_secs"), name="oracle.interval_secs"),
                    conf_tolerance=UFix64(
                        _require_int(oracle.get("conf_tolerance"), name="oracle.conf_tolerance"), N9
                    ),
                ),
                stability_threshold_1=UFix64(_require_int(stability.get("threshold_1"), name="stability.threshold_1"), N2),
                stability_threshold_2=UFix64(_require_int(stability.get("threshold_2"), name="stability.threshold_2"), N2),
                depeg_floor=UFix64(_require_int(stability.get("depeg_floor"), name="stability.depeg_floor"), N2),
                stablecoin_fees=stablecoin_fees,
                levercoin_fees=levercoin_fees,
                lst_swap=lst_swap,
                withdrawal_fee=withdrawal_fee,
                lst_max_relative_delta=UFix64(
                    _require_int(lst_price.get("max_relative_delta"), name="lst_price.max_relative_delta"), N9
                ),
                lst_max_epoch_age=_require_int(lst_price.get("max_epoch_age"), name="lst_price.max_epoch_age"),
                rebalance_curve=rebalance_curve,
                yield_harvest=yield_harvest,
            )
            cfg.stability_controller()
            return cfg
        except ConfigError:
            raise
        except CoreError as exc:
            raise ConfigError(ErrorCode.CONFIG_VALIDATION, str(exc)) from exc
        except (TypeError, ValueError) as exc:
            raise ConfigError(ErrorCode.CONFIG_VALIDATION, str(exc)) from exc

    def stability_controller(self) -> StabilityController:
        return StabilityController(
            stability_threshold_1=self.stability_threshold_1,
            stability_threshold_2=self.stability_threshold_2,
            depeg_floor=self.depeg_floor,
        )

    @classmethod
    def with_overrides(cls, overrides: Mapping[str, Any]) -> "EngineConfig":
        """Defaults with top-level sections replaced by ``overrides``."""
        doc = dict(load_document(DEFAULTS_DOCUMENT))
        doc.update(overrides)
        return cls.from_mapping(doc)


@lru_cache(maxsize=1)
def default_config() -> EngineConfig:
    cfg = EngineConfig.from_mapping(load_document(DEFAULTS_DOCUMENT))
    logger.debug(
        "loaded engine defaults: t1=%s t2=%s floor=%s",
        cfg.stability_threshold_1,
        cfg.stability_threshold_2,
        cfg.depeg_floor,
    )
    return cfg
