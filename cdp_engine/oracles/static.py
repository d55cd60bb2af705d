"""Manually-driven price feed."""
from __future__ import annotations

import time

from ..constants import FEED_DECIMALS
from ..models import RoundData
from .oracle_lib import Clock


class StaticPriceFeed:
    """Feed whose answer only changes when told to.

    Used by simulations and tests, and by the ``static`` price provider.
    """

    def __init__(
        self,
        initial_answer: int,
        description: str = "static",
        decimals: int = FEED_DECIMALS,
        clock: Clock = time.time,
    ) -> None:
        self._decimals = decimals
        self._description = description
        self._clock = clock
        self._round = RoundData(0, 0, 0, 0, 0)
        self.update_answer(initial_answer)

    @property
    def decimals(self) -> int:
        return self._decimals

    @property
    def description(self) -> str:
        return self._description

    def update_answer(self, answer: int) -> None:
        now = int(self._clock())
        round_id = self._round.round_id + 1
        self._round = RoundData(round_id, answer, now, now, round_id)

    def update_round_data(
        self, round_id: int, answer: int, timestamp: int, started_at: int
    ) -> None:
        self._round = RoundData(round_id, answer, started_at, timestamp, round_id)

    def latest_round_data(self) -> RoundData:
        return self._round
