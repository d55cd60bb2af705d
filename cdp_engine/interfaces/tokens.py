"""Token protocols — the external transfer and mint primitives.

Every call is untrusted: it may return ``False``, raise, or call back into
the engine. Calls are made on behalf of the engine, so ``transfer`` moves
tokens out of engine custody and ``transfer_from`` pulls into it.
"""
from typing import Protocol


class CollateralToken(Protocol):
    """Abstract interface for an approved collateral asset."""

    def transfer(self, recipient: str, amount: int) -> bool: ...

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool: ...


class StablecoinToken(Protocol):
    """Abstract interface for the synthetic token the engine owns."""

    def transfer(self, recipient: str, amount: int) -> bool: ...

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool: ...

    def mint(self, to: str, amount: int) -> bool: ...

    def burn(self, amount: int) -> None: ...
