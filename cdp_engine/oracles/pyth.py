"""Pyth Network price feeds served from the Hermes REST endpoint."""
from __future__ import annotations

import logging
import ssl

import aiohttp
import certifi

from ..config import PythConfig
from ..constants import FEED_DECIMALS
from ..models import RoundData

logger = logging.getLogger(__name__)

_EMPTY_ROUND = RoundData(0, 0, 0, 0, 0)


def _to_feed_decimals(price_raw: int, expo: int) -> int:
    """Rescale a Pyth ``price * 10**expo`` to an 8-decimal integer answer."""
    shift = expo + FEED_DECIMALS
    if shift >= 0:
        return price_raw * 10**shift
    return price_raw // 10**-shift


class PythPriceFeed:
    """Synchronous view over one cached Pyth feed."""

    def __init__(self, source: PythPriceSource, name: str) -> None:
        self._source = source
        self._name = name

    @property
    def decimals(self) -> int:
        return FEED_DECIMALS

    @property
    def description(self) -> str:
        return self._name

    def latest_round_data(self) -> RoundData:
        return self._source.round_for(self._name)


class PythPriceSource:
    """Fetch prices from Pyth Network and cache them as feed rounds.

    ``refresh`` is the only network call; feeds read the cache, so a source
    that stops refreshing eventually trips the staleness check.
    """

    def __init__(self, config: PythConfig) -> None:
        self.hermes_url = config.hermes_url
        self.price_feeds = dict(config.feeds)
        self._rounds: dict[str, RoundData] = {}

    def feed(self, name: str) -> PythPriceFeed:
        if name not in self.price_feeds:
            raise KeyError(f"No Pyth feed configured for '{name}'")
        return PythPriceFeed(self, name)

    def round_for(self, name: str) -> RoundData:
        return self._rounds.get(name, _EMPTY_ROUND)

    async def refresh(self, names: list[str] | None = None) -> dict[str, RoundData]:
        """Fetch current prices from Pyth Network.

        Args:
            names: Optional list of feed names to refresh. If None, refreshes
                   all configured feeds.

        Returns the rounds that were updated by this call.
        """
        updated: dict[str, RoundData] = {}

        feeds = self.price_feeds
        if names is not None:
            feeds = {k: v for k, v in self.price_feeds.items() if k in names}

        feed_ids = list(set(feeds.values()))
        if not feed_ids:
            return updated

        query_params = "&".join([f"ids[]={fid}" for fid in feed_ids])
        url = f"{self.hermes_url}?{query_params}"

        ssl_context = ssl.create_default_context(cafile=certifi.where())
        connector = aiohttp.TCPConnector(ssl=ssl_context)

        try:
            async with aiohttp.ClientSession(connector=connector) as session:
                async with session.get(url) as response:
                    if response.status != 200:
                        logger.error(
                            "Error fetching prices from Pyth: HTTP %s", response.status
                        )
                        return updated

                    data = await response.json()
                    parsed = data.get("parsed", [])

                    # Hermes returns ids without the 0x prefix
                    id_to_names: dict[str, list[str]] = {}
                    for name, feed_id in feeds.items():
                        key = feed_id.lower().removeprefix("0x")
                        id_to_names.setdefault(key, []).append(name)

                    for item in parsed:
                        feed_id = str(item.get("id", "")).lower().removeprefix("0x")
                        price_data = item.get("price", {})
                        price_raw = int(price_data.get("price", 0))
                        expo = int(price_data.get("expo", 0))
                        publish_time = int(price_data.get("publish_time", 0))

                        answer = _to_feed_decimals(price_raw, expo)

                        for name in id_to_names.get(feed_id, []):
                            round_id = self.round_for(name).round_id + 1
                            updated[name] = RoundData(
                                round_id, answer, publish_time, publish_time, round_id
                            )

                    self._rounds.update(updated)

                    logger.info("Fetched prices from Pyth Network:")
                    for name, rnd in sorted(updated.items()):
                        logger.info("  %s: $%.4f", name, rnd.answer / 10**FEED_DECIMALS)

        except Exception as e:
            logger.error("Error fetching prices from Pyth: %s", e)

        return updated
