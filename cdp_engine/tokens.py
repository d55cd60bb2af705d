"""In-memory token primitives.

Reference implementations of the collateral asset and of the stablecoin,
used by the simulator and the tests. The engine only ever sees them through
the bindings at the bottom of this module, which fix the engine's own
address as the caller.
"""
from __future__ import annotations

import logging

from .constants import ZERO_ADDRESS
from .errors import StablecoinError

logger = logging.getLogger(__name__)


class InMemoryToken:
    """Balances and allowances for one fungible asset."""

    def __init__(self, symbol: str, decimals: int = 18) -> None:
        self.symbol = symbol
        self.decimals = decimals
        self.total_supply = 0
        self._balances: dict[str, int] = {}
        self._allowances: dict[tuple[str, str], int] = {}

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def allowance(self, owner: str, spender: str) -> int:
        return self._allowances.get((owner, spender), 0)

    def approve(self, owner: str, spender: str, amount: int) -> bool:
        self._allowances[(owner, spender)] = amount
        return True

    def mint_to(self, account: str, amount: int) -> None:
        """Faucet: create tokens out of thin air."""
        self._balances[account] = self.balance_of(account) + amount
        self.total_supply += amount

    def transfer(self, sender: str, recipient: str, amount: int) -> bool:
        if amount < 0 or self.balance_of(sender) < amount:
            logger.debug("%s transfer %s -> %s of %d refused", self.symbol, sender, recipient, amount)
            return False
        self._balances[sender] = self.balance_of(sender) - amount
        self._balances[recipient] = self.balance_of(recipient) + amount
        return True

    def transfer_from(self, spender: str, sender: str, recipient: str, amount: int) -> bool:
        allowed = self.allowance(sender, spender)
        if allowed < amount:
            logger.debug("%s allowance %s -> %s too low (%d < %d)", self.symbol, sender, spender, allowed, amount)
            return False
        if not self.transfer(sender, recipient, amount):
            return False
        self._allowances[(sender, spender)] = allowed - amount
        return True

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.symbol!r})"


class Stablecoin(InMemoryToken):
    """Synthetic token with an owner-gated mint right."""

    def __init__(self, owner: str, symbol: str = "DSC") -> None:
        super().__init__(symbol, decimals=18)
        self.owner = owner

    def _only_owner(self, caller: str) -> None:
        if caller != self.owner:
            raise StablecoinError(f"{caller} is not the owner of {self.symbol}")

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self._only_owner(caller)
        self.owner = new_owner

    def mint(self, caller: str, to: str, amount: int) -> bool:
        self._only_owner(caller)
        if to == ZERO_ADDRESS:
            raise StablecoinError("Cannot mint to the zero address")
        if amount <= 0:
            raise StablecoinError("Mint amount must be more than zero")
        self.mint_to(to, amount)
        return True

    def burn(self, caller: str, amount: int) -> None:
        self._only_owner(caller)
        if amount <= 0:
            raise StablecoinError("Burn amount must be more than zero")
        balance = self.balance_of(caller)
        if balance < amount:
            raise StablecoinError(f"Burn amount {amount} exceeds balance {balance}")
        self._balances[caller] = balance - amount
        self.total_supply -= amount


# ---------------------------------------------------------------------------
# Engine-side bindings
# ---------------------------------------------------------------------------


class TokenBinding:
    """A token as seen from the engine's address (CollateralToken protocol)."""

    def __init__(self, token: InMemoryToken, engine_address: str) -> None:
        self.token = token
        self.engine_address = engine_address

    def transfer(self, recipient: str, amount: int) -> bool:
        return self.token.transfer(self.engine_address, recipient, amount)

    def transfer_from(self, sender: str, recipient: str, amount: int) -> bool:
        return self.token.transfer_from(self.engine_address, sender, recipient, amount)


class StablecoinBinding(TokenBinding):
    """The stablecoin as seen from its owner, the engine (StablecoinToken protocol)."""

    token: Stablecoin

    def __init__(self, token: Stablecoin, engine_address: str) -> None:
        super().__init__(token, engine_address)

    def mint(self, to: str, amount: int) -> bool:
        return self.token.mint(self.engine_address, to, amount)

    def burn(self, amount: int) -> None:
        self.token.burn(self.engine_address, amount)
