"""Data models — all frozen (immutable)."""
from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class RoundData:
    """One answer from a price feed (8-decimal fixed point)."""

    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int


@dataclass(frozen=True)
class AccountInformation:
    """Debt and collateral value of one account, both 18-decimal USD."""

    total_debt: int
    collateral_value_usd: int


@dataclass(frozen=True)
class AssetDetail:
    """Single collateral asset within a position."""

    asset_id: str
    amount: int
    price: int
    usd_value: int


@dataclass(frozen=True)
class PositionData:
    """Snapshot of one account's position, used for reports."""

    account: str
    collateral_value_usd: int
    total_debt: int
    health_factor: int
    collateral_assets: tuple[AssetDetail, ...] = ()

    @property
    def has_debt(self) -> bool:
        return self.total_debt > 0


# ---------------------------------------------------------------------------
# Events (published after commit)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CollateralDeposited:
    account: str
    asset_id: str
    amount: int


@dataclass(frozen=True)
class CollateralRedeemed:
    redeemed_from: str
    redeemed_to: str
    asset_id: str
    amount: int


@dataclass(frozen=True)
class StablecoinMinted:
    account: str
    amount: int


@dataclass(frozen=True)
class StablecoinBurned:
    on_behalf_of: str
    payer: str
    amount: int


@dataclass(frozen=True)
class Liquidated:
    liquidator: str
    user: str
    asset_id: str
    debt_covered: int
    collateral_seized: int
    bonus: int
