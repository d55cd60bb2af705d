"""Price feed protocol — external price source abstraction."""
from typing import Protocol

from ..models import RoundData


class PriceFeed(Protocol):
    """Abstract interface for an 8-decimal price feed."""

    @property
    def decimals(self) -> int: ...

    @property
    def description(self) -> str: ...

    def latest_round_data(self) -> RoundData: ...
