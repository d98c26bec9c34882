"""
Epoch-validated protocol state.
"""

from .lst_sol_price import LstSolPrice
from .total_sol_cache import TotalSolCache
from .virtual_stablecoin import VirtualStablecoin
from .yields import YieldHarvestCache, YieldHarvestConfig

__all__ = [
    "LstSolPrice",
    "TotalSolCache",
    "VirtualStablecoin",
    "YieldHarvestCache",
    "YieldHarvestConfig",
]
