from __future__ import annotations

import copy
import logging

import pytest

from hylo_engine.config import DEFAULTS_DOCUMENT, EngineConfig, default_config
from hylo_engine.core.fix import N2, N4, N9, UFix64
from hylo_engine.core.stability_mode import StabilityMode
from hylo_engine.data import load_document
from hylo_engine.errors import ConfigError, ErrorCode


def _doc() -> dict:
    return copy.deepcopy(dict(load_document(DEFAULTS_DOCUMENT)))


def test_defaults_load() -> None:
    cfg = default_config()
    assert cfg.oracle.interval_secs == 60
    assert cfg.oracle.conf_tolerance == UFix64(20_000_000, N9)
    assert cfg.stability_threshold_1 == UFix64(150, N2)
    assert cfg.stability_threshold_2 == UFix64(130, N2)
    assert cfg.depeg_floor == UFix64(100, N2)
    assert cfg.stablecoin_fees.mint_fee(StabilityMode.MODE_1) == UFix64(50, N4)
    assert cfg.levercoin_fees.redeem_fee(StabilityMode.MODE_2) == UFix64(300, N4)
    assert cfg.lst_swap.fee == UFix64(5, N4)
    assert cfg.withdrawal_fee == UFix64(10, N4)
    assert cfg.lst_max_epoch_age == 0


def test_defaults_are_cached() -> None:
    assert default_config() is default_config()


def test_overrides_replace_sections() -> None:
    cfg = EngineConfig.with_overrides({"stability": {"threshold_1": 160, "threshold_2": 140, "depeg_floor": 100}})
    assert cfg.stability_threshold_1 == UFix64(160, N2)
    assert cfg.stability_controller().stability_mode(UFix64(1_500_000_000, N9)) is StabilityMode.MODE_1


@pytest.mark.parametrize(
    "mutate",
    [
        lambda d: d.update(stability={"threshold_1": 130, "threshold_2": 150, "depeg_floor": 100}),
        lambda d: d["stablecoin_fees"].update(normal={"mint": 10_000, "redeem": 10}),
        lambda d: d["oracle"].update(interval_secs=0),
        lambda d: d["oracle"].update(interval_secs="60"),
        lambda d: d.update(lst_swap_fee=0),
        lambda d: d.update(stability_pool_withdrawal_fee=10_000),
        lambda d: d.update(rebalance_curve={"floor_mult": 0, "ceil_mult": 200}),
        lambda d: d.update(yield_harvest={"allocation": 0, "fee": 100}),
        lambda d: d.pop("levercoin_fees"),
        lambda d: d["lst_price"].update(max_epoch_age=-1),
    ],
)
def test_invalid_documents_rejected(mutate) -> None:
    doc = _doc()
    mutate(doc)
    with pytest.raises(ConfigError) as exc:
        EngineConfig.from_mapping(doc)
    assert exc.value.code is ErrorCode.CONFIG_VALIDATION


def test_default_load_logs_thresholds(caplog: pytest.LogCaptureFixture) -> None:
    default_config.cache_clear()
    with caplog.at_level(logging.DEBUG, logger="hylo_engine.config"):
        default_config()
    assert "loaded engine defaults" in caplog.text
