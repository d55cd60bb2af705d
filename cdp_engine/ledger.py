"""Position ledger — per-account collateral and debt balances.

All writes go through a :class:`Journal` opened by
:meth:`PositionLedger.transaction`. A failure anywhere inside the
transaction restores every written slot, runs the registered compensations
for external calls that already went through, and discards pending events,
so an operation either commits whole or leaves no trace.
"""
from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable, Iterator

from .constants import MAX_UINT256
from .errors import ArithmeticOverflow, ArithmeticUnderflow

logger = logging.getLogger(__name__)

CommitHook = Callable[[list[Any]], None]


def _require_non_negative(key: Any, amount: int) -> None:
    if amount < 0:
        raise ValueError(f"{key!r}: ledger amounts must not be negative, got {amount}")


class Journal:
    """Undo log for one ledger transaction."""

    def __init__(self) -> None:
        self._writes: list[tuple[dict[Any, int], Any, int | None]] = []
        self._compensations: list[tuple[str, Callable[[], Any]]] = []
        self._events: list[Any] = []

    def record(self, table: dict[Any, int], key: Any) -> None:
        self._writes.append((table, key, table.get(key)))

    def on_rollback(self, description: str, action: Callable[[], Any]) -> None:
        """Register an action that reverses an external call already made."""
        self._compensations.append((description, action))

    def emit(self, event: Any) -> None:
        self._events.append(event)

    @property
    def events(self) -> list[Any]:
        return list(self._events)

    def rollback(self) -> None:
        for table, key, old in reversed(self._writes):
            if old is None:
                table.pop(key, None)
            else:
                table[key] = old
        for description, action in reversed(self._compensations):
            try:
                action()
            except Exception as e:
                logger.error("Compensation '%s' failed: %s", description, e)
        self._writes.clear()
        self._compensations.clear()
        self._events.clear()


class PositionLedger:
    """Source of truth for solvency.

    Unseen keys read as zero; entries are created on first write and never
    deleted.
    """

    def __init__(self, on_commit: CommitHook | None = None) -> None:
        self._collateral: dict[tuple[str, str], int] = {}
        self._debt: dict[str, int] = {}
        self._journal: Journal | None = None
        self._on_commit = on_commit

    def collateral_of(self, account: str, asset_id: str) -> int:
        return self._collateral.get((account, asset_id), 0)

    def debt_of(self, account: str) -> int:
        return self._debt.get(account, 0)

    def accounts(self) -> tuple[str, ...]:
        """Every account that has ever held collateral or debt, first-seen order."""
        seen: dict[str, None] = {}
        for account, _ in self._collateral:
            seen.setdefault(account, None)
        for account in self._debt:
            seen.setdefault(account, None)
        return tuple(seen)

    @property
    def in_transaction(self) -> bool:
        return self._journal is not None

    @contextmanager
    def transaction(self) -> Iterator[Journal]:
        """Open an all-or-nothing unit of work; nested calls join the outer one."""
        if self._journal is not None:
            yield self._journal
            return

        journal = Journal()
        self._journal = journal
        try:
            yield journal
        except BaseException:
            journal.rollback()
            raise
        finally:
            self._journal = None

        if self._on_commit is not None and journal.events:
            self._on_commit(journal.events)

    def add_collateral(self, account: str, asset_id: str, amount: int) -> int:
        return self._add(self._collateral, (account, asset_id), amount)

    def sub_collateral(self, account: str, asset_id: str, amount: int) -> int:
        return self._sub(self._collateral, (account, asset_id), amount)

    def add_debt(self, account: str, amount: int) -> int:
        return self._add(self._debt, account, amount)

    def sub_debt(self, account: str, amount: int) -> int:
        return self._sub(self._debt, account, amount)

    def _journal_for_write(self) -> Journal:
        if self._journal is None:
            raise RuntimeError("Ledger writes require an open transaction")
        return self._journal

    def _add(self, table: dict[Any, int], key: Any, amount: int) -> int:
        journal = self._journal_for_write()
        _require_non_negative(key, amount)
        new = table.get(key, 0) + amount
        if new > MAX_UINT256:
            raise ArithmeticOverflow(f"{key!r}: {table.get(key, 0)} + {amount} overflows")
        journal.record(table, key)
        table[key] = new
        return new

    def _sub(self, table: dict[Any, int], key: Any, amount: int) -> int:
        journal = self._journal_for_write()
        _require_non_negative(key, amount)
        current = table.get(key, 0)
        if amount > current:
            raise ArithmeticUnderflow(f"{key!r}: {current} - {amount} underflows")
        journal.record(table, key)
        table[key] = current - amount
        return current - amount
