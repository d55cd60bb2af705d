"""Unit tests for the journaled position ledger."""
from __future__ import annotations

import logging

import pytest

from cdp_engine.constants import MAX_UINT256
from cdp_engine.errors import ArithmeticOverflow, ArithmeticUnderflow
from cdp_engine.ledger import PositionLedger


@pytest.fixture()
def committed() -> list:
    return []


@pytest.fixture()
def ledger(committed: list) -> PositionLedger:
    return PositionLedger(on_commit=committed.extend)


class TestReads:
    def test_unseen_keys_are_zero(self, ledger: PositionLedger) -> None:
        assert ledger.collateral_of("a", "WETH") == 0
        assert ledger.debt_of("a") == 0
        assert ledger.accounts() == ()

    def test_accounts_first_seen_order(self, ledger: PositionLedger) -> None:
        with ledger.transaction():
            ledger.add_debt("b", 1)
            ledger.add_collateral("a", "WETH", 1)
            ledger.add_collateral("b", "WBTC", 1)
        assert ledger.accounts() == ("a", "b")


class TestWrites:
    def test_write_outside_transaction_raises(self, ledger: PositionLedger) -> None:
        with pytest.raises(RuntimeError):
            ledger.add_debt("a", 1)

    def test_add_and_sub(self, ledger: PositionLedger) -> None:
        with ledger.transaction():
            ledger.add_collateral("a", "WETH", 10)
            ledger.sub_collateral("a", "WETH", 4)
            ledger.add_debt("a", 7)
            ledger.sub_debt("a", 7)
        assert ledger.collateral_of("a", "WETH") == 6
        assert ledger.debt_of("a") == 0

    def test_underflow_raises(self, ledger: PositionLedger) -> None:
        with pytest.raises(ArithmeticUnderflow):
            with ledger.transaction():
                ledger.add_debt("a", 5)
                ledger.sub_debt("a", 6)
        assert ledger.debt_of("a") == 0

    def test_overflow_raises(self, ledger: PositionLedger) -> None:
        with pytest.raises(ArithmeticOverflow):
            with ledger.transaction():
                ledger.add_debt("a", MAX_UINT256)
                ledger.add_debt("a", 1)
        assert ledger.debt_of("a") == 0

    @pytest.mark.parametrize(
        "write", ["add_debt", "sub_debt", "add_collateral", "sub_collateral"]
    )
    def test_negative_amount_rejected(self, ledger: PositionLedger, write: str) -> None:
        args = ("a", -3) if write.endswith("debt") else ("a", "WETH", -3)
        with pytest.raises(ValueError, match="must not be negative"):
            with ledger.transaction():
                ledger.add_debt("a", 5)
                ledger.add_collateral("a", "WETH", 5)
                getattr(ledger, write)(*args)
        assert ledger.debt_of("a") == 0
        assert ledger.collateral_of("a", "WETH") == 0

    def test_zero_entries_persist(self, ledger: PositionLedger) -> None:
        with ledger.transaction():
            ledger.add_debt("a", 5)
        with ledger.transaction():
            ledger.sub_debt("a", 5)
        assert ledger.accounts() == ("a",)


class TestTransactions:
    def test_rollback_restores_every_write(self, ledger: PositionLedger) -> None:
        with ledger.transaction():
            ledger.add_collateral("a", "WETH", 10)

        with pytest.raises(ValueError):
            with ledger.transaction():
                ledger.sub_collateral("a", "WETH", 3)
                ledger.add_collateral("b", "WETH", 3)
                ledger.add_debt("a", 100)
                raise ValueError("boom")

        assert ledger.collateral_of("a", "WETH") == 10
        assert ledger.collateral_of("b", "WETH") == 0
        assert ledger.debt_of("a") == 0
        assert ledger.accounts() == ("a",)

    def test_nested_transaction_joins_outer(self, ledger: PositionLedger) -> None:
        with pytest.raises(ValueError):
            with ledger.transaction() as outer:
                with ledger.transaction() as inner:
                    assert inner is outer
                    ledger.add_debt("a", 1)
                raise ValueError("boom")
        assert ledger.debt_of("a") == 0

    def test_compensations_run_in_reverse(self, ledger: PositionLedger) -> None:
        calls: list[str] = []
        with pytest.raises(ValueError):
            with ledger.transaction() as journal:
                journal.on_rollback("first", lambda: calls.append("first"))
                journal.on_rollback("second", lambda: calls.append("second"))
                raise ValueError("boom")
        assert calls == ["second", "first"]

    def test_compensations_skipped_on_commit(self, ledger: PositionLedger) -> None:
        calls: list[str] = []
        with ledger.transaction() as journal:
            journal.on_rollback("undo", lambda: calls.append("undo"))
        assert calls == []

    def test_failing_compensation_is_logged(
        self, ledger: PositionLedger, caplog: pytest.LogCaptureFixture
    ) -> None:
        def explode() -> None:
            raise RuntimeError("cannot undo")

        calls: list[str] = []
        with caplog.at_level(logging.ERROR, logger="cdp_engine.ledger"):
            with pytest.raises(ValueError, match="original"):
                with ledger.transaction() as journal:
                    journal.on_rollback("ok", lambda: calls.append("ok"))
                    journal.on_rollback("bad", explode)
                    raise ValueError("original")
        assert calls == ["ok"]
        assert "cannot undo" in caplog.text

    def test_events_published_only_on_commit(
        self, ledger: PositionLedger, committed: list
    ) -> None:
        with pytest.raises(ValueError):
            with ledger.transaction() as journal:
                journal.emit("dropped")
                raise ValueError("boom")
        assert committed == []

        with ledger.transaction() as journal:
            journal.emit("one")
            journal.emit("two")
        assert committed == ["one", "two"]

    def test_in_transaction_flag(self, ledger: PositionLedger) -> None:
        assert not ledger.in_transaction
        with ledger.transaction():
            assert ledger.in_transaction
        assert not ledger.in_transaction
