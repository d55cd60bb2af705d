"""Price oracle adapters and feeds."""
from .oracle_lib import PriceOracle, stale_check_latest_round_data
from .pyth import PythPriceFeed, PythPriceSource
from .static import StaticPriceFeed

__all__ = [
    "PriceOracle",
    "PythPriceFeed",
    "PythPriceSource",
    "StaticPriceFeed",
    "stale_check_latest_round_data",
]
