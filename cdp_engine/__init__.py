"""Collateralized-debt accounting engine."""
from .engine import CollateralEngine
from .health import calculate_health_factor
from .ledger import PositionLedger
from .registry import CollateralRegistry

__all__ = [
    "CollateralEngine",
    "CollateralRegistry",
    "PositionLedger",
    "calculate_health_factor",
]

__version__ = "0.1.0"
