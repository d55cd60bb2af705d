"""Error taxonomy for the collateral engine.

Every error raised by an engine operation derives from :class:`EngineError`
and carries its diagnostic values as attributes.
"""
from __future__ import annotations


class EngineError(Exception):
    """Base class for engine errors."""


class ZeroAmount(EngineError):
    """An amount that must be more than zero was not."""

    def __init__(self, amount: int = 0) -> None:
        super().__init__(f"Amount must be more than zero (got {amount})")
        self.amount = amount


class UnsupportedAsset(EngineError):
    """The asset id is not in the collateral registry."""

    def __init__(self, asset_id: str) -> None:
        super().__init__(f"Asset '{asset_id}' is not an approved collateral")
        self.asset_id = asset_id


class LengthMismatch(EngineError):
    """Registry construction with asset and feed lists of different lengths."""

    def __init__(self, assets: int, feeds: int) -> None:
        super().__init__(
            f"Asset list has {assets} entries but feed list has {feeds}"
        )
        self.assets = assets
        self.feeds = feeds


class TransferFailed(EngineError):
    """An external token transfer reported failure."""


class MintFailed(EngineError):
    """The stablecoin mint primitive reported failure."""


class BreaksHealthFactor(EngineError):
    """A state change would leave an account below the minimum health factor."""

    def __init__(self, health_factor: int, account: str = "") -> None:
        super().__init__(
            f"Health factor {health_factor} of '{account}' is below the minimum"
        )
        self.health_factor = health_factor
        self.account = account


class HealthFactorIsOk(EngineError):
    """Liquidation attempted on an account that is not undercollateralized."""

    def __init__(self, health_factor: int) -> None:
        super().__init__(f"Health factor {health_factor} is ok, cannot liquidate")
        self.health_factor = health_factor


class HealthFactorNotImproved(EngineError):
    """Liquidation did not strictly improve the target's health factor."""

    def __init__(self, starting: int, ending: int) -> None:
        super().__init__(
            f"Health factor did not improve ({starting} -> {ending})"
        )
        self.starting = starting
        self.ending = ending


class StalePrice(EngineError):
    """Oracle data is older than the allowed timeout or incomplete."""

    def __init__(self, feed: str, age: int) -> None:
        super().__init__(f"Price from feed '{feed}' is stale ({age}s old)")
        self.feed = feed
        self.age = age


class InvalidPrice(EngineError):
    """A feed reported a price that is zero or negative."""

    def __init__(self, feed: str, answer: int) -> None:
        super().__init__(f"Price from feed '{feed}' is not positive ({answer})")
        self.feed = feed
        self.answer = answer


class ArithmeticUnderflow(EngineError):
    """A balance would drop below zero."""


class ArithmeticOverflow(EngineError):
    """A balance would exceed the unsigned 256-bit range."""


class ReentrantCall(EngineError):
    """A state-changing call was made while another one was in progress."""


class StablecoinError(Exception):
    """Invalid request to the in-memory stablecoin."""
