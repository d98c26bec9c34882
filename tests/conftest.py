from __future__ import annotations

import copy
from typing import Any, Callable, Dict

import pytest

from hylo_engine.core.clock import FixedClock
from hylo_engine.integration.protocol_snapshot import ProtocolState


SLOT = 300_000_000
EPOCH = 800
NOW = 1_750_000_000


def base_snapshot_mapping() -> Dict[str, Any]:
    """
    Healthy protocol at SOL = $150:

    - 1M SOL of collateral against 80M hyUSD (ratio ~1.87, Normal)
    - 20M xSOL, 10M shyUSD backed by 10.5M hyUSD in the pool
    - 1000 xBTC at $100k backing 50M virtual hyUSD
    """
    return {
        "version": 1,
        "clock": {"slot": SLOT, "epoch": EPOCH, "unix_timestamp": NOW},
        "sol_usd_feed": {
            "price": 15_000_000_000,
            "conf": 7_500_000,
            "exponent": -8,
            "publish_time": NOW - 5,
            "posted_slot": SLOT - 10,
            "verification_level": "full",
        },
        "total_sol_cache": {"current_update_epoch": EPOCH, "total_sol": 1_000_000_000_000_000},
        "lsts": [
            {
                "token": "JITOSOL",
                "price_sol": 1_200_000_000,
                "price_epoch": EPOCH,
                "vault_balance": 500_000_000_000_000,
            },
            {
                "token": "HYLOSOL",
                "price_sol": 1_100_000_000,
                "price_epoch": EPOCH,
                "vault_balance": 363_636_000_000_000,
            },
        ],
        "stablecoin_supply": 80_000_000_000_000,
        "levercoin_supply": 20_000_000_000_000,
        "lp_token_supply": 10_000_000_000_000,
        "stablecoin_in_pool": 10_500_000_000_000,
        "levercoin_in_pool": 0,
        "exo_pair": {
            "collateral": "XBTC",
            "levercoin": "XBTC_LEVER",
            "total_collateral": 1_000_000_000_000,
            "collateral_usd_feed": {
                "price": 10_000_000_000_000,
                "conf": 5_000_000_000,
                "exponent": -8,
                "publish_time": NOW - 5,
                "posted_slot": SLOT - 10,
            },
            "virtual_stablecoin_supply": 50_000_000_000_000,
            "levercoin_supply": 10_000_000_000_000,
            "collateral_mint": "XBTCco11atera1mint1111111111111111111111111",
            "levercoin_mint": "XBTCLeverMint11111111111111111111111111111",
        },
    }


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(slot=SLOT, epoch=EPOCH, unix_timestamp=NOW)


@pytest.fixture
def snapshot_mapping() -> Dict[str, Any]:
    return base_snapshot_mapping()


@pytest.fixture
def make_state() -> Callable[..., ProtocolState]:
    """Build a ``ProtocolState`` from the base mapping with top-level keys replaced."""

    def _make(**overrides: Any) -> ProtocolState:
        mapping = copy.deepcopy(base_snapshot_mapping())
        mapping.update(overrides)
        return ProtocolState.from_mapping(mapping)

    return _make


@pytest.fixture
def state(make_state: Callable[..., ProtocolState]) -> ProtocolState:
    return make_state()
