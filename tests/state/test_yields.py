from __future__ import annotations

import pytest

from hylo_engine.core.fix import N4, N6, UFix64
from hylo_engine.errors import EpochError, ErrorCode
from hylo_engine.state.yields import YieldHarvestCache, YieldHarvestConfig


CONFIG = YieldHarvestConfig(UFix64(5_000, N4), UFix64(100, N4)).validate()


def test_allocation_and_fee() -> None:
    to_pool = CONFIG.apply_allocation(UFix64(1_000_001, N6))
    assert to_pool == UFix64(500_000, N6)
    fee = CONFIG.apply_fee(to_pool)
    assert fee.fees_extracted == UFix64(5_000, N6)
    assert fee.amount_remaining == UFix64(495_000, N6)


@pytest.mark.parametrize(
    "allocation,fee",
    [(0, 100), (10_001, 100), (5_000, 0), (5_000, 10_001)],
)
def test_config_validation(allocation: int, fee: int) -> None:
    with pytest.raises(EpochError) as exc:
        YieldHarvestConfig(UFix64(allocation, N4), UFix64(fee, N4)).validate()
    assert exc.value.code is ErrorCode.YIELD_HARVEST_CONFIG_VALIDATION


def test_full_allocation_is_valid() -> None:
    YieldHarvestConfig(UFix64(10_000, N4), UFix64(10_000, N4)).validate()


def test_cache_update_and_staleness() -> None:
    cache = YieldHarvestCache(epoch=4)
    assert cache.is_stale(5)
    cache = cache.update(UFix64(9_000_000, N6), UFix64(495_000, N6), 5)
    assert not cache.is_stale(5)
    assert cache.stablecoin_yield_to_pool == UFix64(495_000, N6)
    with pytest.raises(EpochError) as exc:
        cache.update(UFix64(0, N6), UFix64(0, N6), 4)
    assert exc.value.code is ErrorCode.EPOCH_ORDER
