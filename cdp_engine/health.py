"""Health factor — the single risk metric for a debt position."""
from __future__ import annotations

from .constants import (
    LIQUIDATION_PRECISION,
    LIQUIDATION_THRESHOLD,
    MAX_UINT256,
    MIN_HEALTH_FACTOR,
    PRECISION,
)


def calculate_health_factor(total_debt: int, collateral_value_usd: int) -> int:
    """Return the health factor in 18-decimal fixed point.

    Only ``LIQUIDATION_THRESHOLD`` percent of the collateral value counts
    towards backing the debt. An account without debt is unconditionally
    healthy and gets ``MAX_UINT256``.
    """
    if total_debt == 0:
        return MAX_UINT256
    collateral_adjusted = collateral_value_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    return collateral_adjusted * PRECISION // total_debt


def is_healthy(health_factor: int) -> bool:
    return health_factor >= MIN_HEALTH_FACTOR
