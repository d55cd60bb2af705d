"""Unit tests for data models."""
from __future__ import annotations

import pytest

from cdp_engine.models import (
    AccountInformation,
    AssetDetail,
    CollateralDeposited,
    PositionData,
    RoundData,
)


class TestRoundData:
    def test_frozen(self) -> None:
        r = RoundData(1, 2000 * 10**8, 10, 10, 1)
        with pytest.raises(AttributeError):
            r.answer = 0  # type: ignore[misc]


class TestAssetDetail:
    def test_creation(self) -> None:
        a = AssetDetail(asset_id="WETH", amount=10, price=2000, usd_value=20000)
        assert a.asset_id == "WETH"
        assert a.usd_value == 20000

    def test_equality(self) -> None:
        a1 = AssetDetail("WETH", 10, 2000, 20000)
        a2 = AssetDetail("WETH", 10, 2000, 20000)
        assert a1 == a2


class TestPositionData:
    def test_defaults(self) -> None:
        p = PositionData(account="0x1", collateral_value_usd=0, total_debt=0, health_factor=0)
        assert p.collateral_assets == ()
        assert not p.has_debt

    def test_frozen(self) -> None:
        p = PositionData(account="0x1", collateral_value_usd=0, total_debt=5, health_factor=0)
        assert p.has_debt
        with pytest.raises(AttributeError):
            p.total_debt = 0  # type: ignore[misc]


class TestEvents:
    def test_events_compare_by_value(self) -> None:
        assert CollateralDeposited("a", "WETH", 1) == CollateralDeposited("a", "WETH", 1)
        assert AccountInformation(1, 2) != AccountInformation(2, 1)
