"""Collateral registry — approved assets and the oracles that price them."""
from __future__ import annotations

import logging
from typing import Iterator, Sequence

from .errors import LengthMismatch, UnsupportedAsset
from .oracles import PriceOracle

logger = logging.getLogger(__name__)


class CollateralRegistry:
    """Static, ordered mapping of asset id to price oracle.

    Populated once from two parallel sequences; read-only afterwards.
    """

    def __init__(self, asset_ids: Sequence[str], oracles: Sequence[PriceOracle]) -> None:
        if len(asset_ids) != len(oracles):
            raise LengthMismatch(len(asset_ids), len(oracles))

        self._oracles: dict[str, PriceOracle] = {}
        for asset_id, oracle in zip(asset_ids, oracles):
            if asset_id in self._oracles:
                raise ValueError(f"Collateral asset '{asset_id}' registered twice")
            self._oracles[asset_id] = oracle
        self._assets = tuple(self._oracles)

        logger.info("Registered %d collateral assets: %s", len(self._assets), ", ".join(self._assets))

    def is_approved(self, asset_id: str) -> bool:
        return asset_id in self._oracles

    def require_approved(self, asset_id: str) -> None:
        if asset_id not in self._oracles:
            raise UnsupportedAsset(asset_id)

    def price_oracle_for(self, asset_id: str) -> PriceOracle:
        try:
            return self._oracles[asset_id]
        except KeyError:
            raise UnsupportedAsset(asset_id) from None

    def list_assets(self) -> tuple[str, ...]:
        return self._assets

    def __contains__(self, asset_id: object) -> bool:
        return asset_id in self._oracles

    def __iter__(self) -> Iterator[str]:
        return iter(self._assets)

    def __len__(self) -> int:
        return len(self._assets)
