"""Staleness-checked reads over an 8-decimal price feed."""
from __future__ import annotations

import logging
import time
from typing import Callable

from ..constants import ADDITIONAL_FEED_PRECISION, TIMEOUT
from ..errors import InvalidPrice, StalePrice
from ..interfaces import PriceFeed
from ..models import RoundData

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


def stale_check_latest_round_data(feed: PriceFeed, now: int) -> RoundData:
    """Return the feed's latest round, raising StalePrice if it is unusable.

    A round is unusable when it never completed (``updated_at == 0``), was
    carried over from an earlier round, or is older than :data:`TIMEOUT`.
    """
    data = feed.latest_round_data()
    if data.updated_at == 0 or data.answered_in_round < data.round_id:
        raise StalePrice(feed.description, now)

    seconds_since = now - data.updated_at
    if seconds_since > TIMEOUT:
        logger.warning(
            "Feed %s is stale: last update %ds ago", feed.description, seconds_since
        )
        raise StalePrice(feed.description, seconds_since)
    return data


class PriceOracle:
    """Adapter turning a feed's answers into 18-decimal prices."""

    def __init__(self, feed: PriceFeed, clock: Clock = time.time) -> None:
        self.feed = feed
        self._clock = clock

    @property
    def timeout(self) -> int:
        return TIMEOUT

    def now(self) -> int:
        return int(self._clock())

    def latest_price(self) -> tuple[int, int]:
        """Staleness-checked ``(price, updated_at)``; gates solvency and payouts."""
        data = stale_check_latest_round_data(self.feed, self.now())
        if data.answer <= 0:
            raise InvalidPrice(self.feed.description, data.answer)
        return data.answer * ADDITIONAL_FEED_PRECISION, data.updated_at

    def latest_price_unchecked(self) -> tuple[int, int]:
        """Raw ``(price, updated_at)`` for informational reads; non-positive answers read as 0."""
        data = self.feed.latest_round_data()
        return max(data.answer, 0) * ADDITIONAL_FEED_PRECISION, data.updated_at

    def __repr__(self) -> str:
        return f"PriceOracle({self.feed.description!r})"
