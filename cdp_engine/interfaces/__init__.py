"""Protocol interfaces for the engine's external collaborators."""
from .price_oracle import PriceFeed
from .tokens import CollateralToken, StablecoinToken

__all__ = ["CollateralToken", "PriceFeed", "StablecoinToken"]
