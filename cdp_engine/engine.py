"""Collateral engine — deposits, minting, burning, redemption and liquidation.

Each state-changing operation runs under the engine lock and inside one
ledger transaction, in three phases:

1. ledger effects,
2. health-factor checks against staleness-checked prices,
3. external calls.

Pulls into engine custody are made first and register a compensation with
the transaction; the one irreversible call of an operation (a collateral
push or a stablecoin mint) is always made last. Any failure rolls the ledger
back and undoes the external calls already made.
"""
from __future__ import annotations

import functools
import logging
import threading
from typing import Any, Callable, Mapping, TypeVar

from .constants import (
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    LIQUIDATION_THRESHOLD,
    MIN_HEALTH_FACTOR,
    PRECISION,
    TIMEOUT,
)
from .errors import (
    BreaksHealthFactor,
    EngineError,
    HealthFactorIsOk,
    HealthFactorNotImproved,
    MintFailed,
    ReentrantCall,
    TransferFailed,
    ZeroAmount,
)
from .health import calculate_health_factor, is_healthy
from .interfaces import CollateralToken, PriceFeed, StablecoinToken
from .ledger import Journal, PositionLedger
from .models import (
    AccountInformation,
    AssetDetail,
    CollateralDeposited,
    CollateralRedeemed,
    Liquidated,
    PositionData,
    StablecoinBurned,
    StablecoinMinted,
)
from .registry import CollateralRegistry

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])
EventCallback = Callable[[Any], None]


def _more_than_zero(amount: int) -> None:
    if amount <= 0:
        raise ZeroAmount(amount)


def _non_reentrant(method: F) -> F:
    """Serialize a state-changing operation and reject reentry."""

    @functools.wraps(method)
    def wrapper(self: CollateralEngine, *args: Any, **kwargs: Any) -> Any:
        with self._lock:
            if self._entered:
                raise ReentrantCall(
                    f"{method.__name__} called while another operation is running"
                )
            self._entered = True
            try:
                return method(self, *args, **kwargs)
            except EngineError as e:
                logger.warning("%s rolled back: %s", method.__name__, e)
                raise
            finally:
                self._entered = False

    return wrapper  # type: ignore[return-value]


def _call_external(call: Callable[[], Any], error: type[EngineError], what: str) -> None:
    """Run an untrusted call; a False return and an exception both fail."""
    try:
        ok = call()
    except Exception as e:
        raise error(f"{what} raised {type(e).__name__}: {e}") from e
    if ok is False:
        raise error(f"{what} returned false")


class CollateralEngine:
    """Keeps every account's minted debt backed by its posted collateral."""

    def __init__(
        self,
        registry: CollateralRegistry,
        collateral_tokens: Mapping[str, CollateralToken],
        stablecoin: StablecoinToken,
        address: str,
    ) -> None:
        missing = [a for a in registry.list_assets() if a not in collateral_tokens]
        if missing:
            raise ValueError(f"No token given for collateral assets: {', '.join(missing)}")

        self.address = address
        self._registry = registry
        self._tokens = {a: collateral_tokens[a] for a in registry.list_assets()}
        self._stablecoin = stablecoin
        self._ledger = PositionLedger(on_commit=self._publish)
        self._lock = threading.RLock()
        self._entered = False
        self._subscribers: list[EventCallback] = []

    def subscribe(self, callback: EventCallback) -> None:
        """Receive every committed event, in emission order."""
        self._subscribers.append(callback)

    def _publish(self, events: list[Any]) -> None:
        for event in events:
            logger.info("Event %s", event)
            for callback in self._subscribers:
                try:
                    callback(event)
                except Exception as e:
                    logger.error("Event subscriber failed on %s: %s", type(event).__name__, e)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    @_non_reentrant
    def deposit_collateral(self, account: str, asset_id: str, amount: int) -> None:
        _more_than_zero(amount)
        with self._ledger.transaction() as journal:
            self._credit_collateral(journal, account, asset_id, amount)
            self._pull(journal, self._tokens[asset_id], asset_id, account, amount)
        logger.info("%s deposited %d %s", account, amount, asset_id)

    @_non_reentrant
    def mint(self, account: str, amount: int) -> None:
        _more_than_zero(amount)
        with self._ledger.transaction() as journal:
            self._add_debt(journal, account, amount)
            self._revert_if_health_factor_is_broken(account)
            self._mint_stablecoin(account, amount)
        logger.info("%s minted %d", account, amount)

    @_non_reentrant
    def deposit_collateral_and_mint(
        self, account: str, asset_id: str, collateral_amount: int, amount_to_mint: int
    ) -> None:
        _more_than_zero(collateral_amount)
        _more_than_zero(amount_to_mint)
        with self._ledger.transaction() as journal:
            self._credit_collateral(journal, account, asset_id, collateral_amount)
            self._add_debt(journal, account, amount_to_mint)
            self._revert_if_health_factor_is_broken(account)
            self._pull(journal, self._tokens[asset_id], asset_id, account, collateral_amount)
            self._mint_stablecoin(account, amount_to_mint)
        logger.info(
            "%s deposited %d %s and minted %d", account, collateral_amount, asset_id, amount_to_mint
        )

    @_non_reentrant
    def burn(self, account: str, amount: int) -> None:
        _more_than_zero(amount)
        with self._ledger.transaction() as journal:
            self._reduce_debt(journal, amount, on_behalf_of=account, payer=account)
            # burning can only improve the factor; checked as a post-condition
            self._revert_if_health_factor_is_broken(account)
            self._burn_stablecoin(journal, account, amount)
        logger.info("%s burned %d", account, amount)

    @_non_reentrant
    def redeem_collateral(self, account: str, asset_id: str, amount: int) -> None:
        _more_than_zero(amount)
        with self._ledger.transaction() as journal:
            self._debit_collateral(journal, asset_id, amount, source=account, recipient=account)
            self._revert_if_health_factor_is_broken(account)
            self._push(self._tokens[asset_id], asset_id, account, amount)
        logger.info("%s redeemed %d %s", account, amount, asset_id)

    @_non_reentrant
    def redeem_collateral_for_debt(
        self, account: str, asset_id: str, collateral_amount: int, amount_to_burn: int
    ) -> None:
        _more_than_zero(collateral_amount)
        _more_than_zero(amount_to_burn)
        with self._ledger.transaction() as journal:
            self._reduce_debt(journal, amount_to_burn, on_behalf_of=account, payer=account)
            self._debit_collateral(
                journal, asset_id, collateral_amount, source=account, recipient=account
            )
            self._revert_if_health_factor_is_broken(account)
            self._burn_stablecoin(journal, account, amount_to_burn)
            self._push(self._tokens[asset_id], asset_id, account, collateral_amount)
        logger.info(
            "%s burned %d and redeemed %d %s", account, amount_to_burn, collateral_amount, asset_id
        )

    @_non_reentrant
    def liquidate(self, liquidator: str, asset_id: str, user: str, debt_to_cover: int) -> None:
        """Cover part or all of ``user``'s debt and seize collateral plus a bonus.

        Only accounts below the minimum health factor can be liquidated, and
        the liquidation must leave them strictly better off. If the user's
        collateral cannot cover the bonus (aggregate collateralization below
        100%), the seizure underflows and the liquidation fails.
        """
        _more_than_zero(debt_to_cover)
        self._registry.require_approved(asset_id)

        starting_health_factor = self._health_factor(user)
        if is_healthy(starting_health_factor):
            raise HealthFactorIsOk(starting_health_factor)

        token_amount = self._token_amount_from_usd(asset_id, debt_to_cover)
        bonus = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
        seized = token_amount + bonus

        with self._ledger.transaction() as journal:
            self._debit_collateral(journal, asset_id, seized, source=user, recipient=liquidator)
            self._reduce_debt(journal, debt_to_cover, on_behalf_of=user, payer=liquidator)

            ending_health_factor = self._health_factor(user)
            if ending_health_factor <= starting_health_factor:
                raise HealthFactorNotImproved(starting_health_factor, ending_health_factor)
            self._revert_if_health_factor_is_broken(liquidator)

            self._burn_stablecoin(journal, liquidator, debt_to_cover)
            self._push(self._tokens[asset_id], asset_id, liquidator, seized)
            journal.emit(Liquidated(liquidator, user, asset_id, debt_to_cover, seized, bonus))

        logger.info(
            "%s liquidated %s: covered %d, seized %d %s (bonus %d), health factor %d -> %d",
            liquidator, user, debt_to_cover, seized, asset_id, bonus,
            starting_health_factor, ending_health_factor,
        )

    def _credit_collateral(self, journal: Journal, account: str, asset_id: str, amount: int) -> None:
        self._registry.require_approved(asset_id)
        self._ledger.add_collateral(account, asset_id, amount)
        journal.emit(CollateralDeposited(account, asset_id, amount))

    def _debit_collateral(
        self, journal: Journal, asset_id: str, amount: int, *, source: str, recipient: str
    ) -> None:
        self._registry.require_approved(asset_id)
        self._ledger.sub_collateral(source, asset_id, amount)
        journal.emit(CollateralRedeemed(source, recipient, asset_id, amount))

    def _add_debt(self, journal: Journal, account: str, amount: int) -> None:
        self._ledger.add_debt(account, amount)
        journal.emit(StablecoinMinted(account, amount))

    def _reduce_debt(self, journal: Journal, amount: int, *, on_behalf_of: str, payer: str) -> None:
        self._ledger.sub_debt(on_behalf_of, amount)
        journal.emit(StablecoinBurned(on_behalf_of, payer, amount))

    # ------------------------------------------------------------------
    # External calls
    # ------------------------------------------------------------------

    def _pull(
        self, journal: Journal, token: CollateralToken | StablecoinToken, label: str, sender: str, amount: int
    ) -> None:
        _call_external(
            lambda: token.transfer_from(sender, self.address, amount),
            TransferFailed,
            f"{label} transfer_from({sender}, {amount})",
        )
        journal.on_rollback(
            f"return {amount} {label} to {sender}", lambda: token.transfer(sender, amount)
        )

    def _push(self, token: CollateralToken, label: str, recipient: str, amount: int) -> None:
        _call_external(
            lambda: token.transfer(recipient, amount),
            TransferFailed,
            f"{label} transfer({recipient}, {amount})",
        )

    def _burn_stablecoin(self, journal: Journal, payer: str, amount: int) -> None:
        stablecoin = self._stablecoin
        self._pull(journal, stablecoin, "stablecoin", payer, amount)

        def burn() -> bool:
            stablecoin.burn(amount)
            return True

        _call_external(burn, TransferFailed, f"stablecoin burn({amount})")
        journal.on_rollback(
            f"re-mint {amount} burned stablecoin", lambda: stablecoin.mint(self.address, amount)
        )

    def _mint_stablecoin(self, account: str, amount: int) -> None:
        _call_external(
            lambda: self._stablecoin.mint(account, amount),
            MintFailed,
            f"stablecoin mint({account}, {amount})",
        )

    def _price(self, asset_id: str, checked: bool) -> int:
        oracle = self._registry.price_oracle_for(asset_id)
        price, _ = oracle.latest_price() if checked else oracle.latest_price_unchecked()
        return price

    def _usd_value(self, asset_id: str, amount: int, checked: bool = True) -> int:
        return self._price(asset_id, checked) * amount // PRECISION

    def _token_amount_from_usd(self, asset_id: str, usd_amount: int, checked: bool = True) -> int:
        price = self._price(asset_id, checked)
        if price == 0:
            # only reachable unchecked; the checked path raises InvalidPrice
            return 0
        return usd_amount * PRECISION // price

    def _collateral_value(self, account: str, checked: bool = True) -> int:
        total = 0
        for asset_id in self._registry.list_assets():
            amount = self._ledger.collateral_of(account, asset_id)
            if amount:
                total += self._usd_value(asset_id, amount, checked)
        return total

    def _health_factor(self, account: str, checked: bool = True) -> int:
        return calculate_health_factor(
            self._ledger.debt_of(account), self._collateral_value(account, checked)
        )

    def _revert_if_health_factor_is_broken(self, account: str) -> None:
        health_factor = self._health_factor(account)
        if not is_healthy(health_factor):
            raise BreaksHealthFactor(health_factor, account)

    # ------------------------------------------------------------------
    # Read surface (unchecked prices; never fails on reachable state)
    # ------------------------------------------------------------------

    def get_account_information(self, account: str) -> AccountInformation:
        with self._lock:
            return AccountInformation(
                total_debt=self._ledger.debt_of(account),
                collateral_value_usd=self._collateral_value(account, checked=False),
            )

    def get_collateral_balance_of_user(self, account: str, asset_id: str) -> int:
        self._registry.require_approved(asset_id)
        with self._lock:
            return self._ledger.collateral_of(account, asset_id)

    def get_debt(self, account: str) -> int:
        with self._lock:
            return self._ledger.debt_of(account)

    def get_account_collateral_value(self, account: str) -> int:
        with self._lock:
            return self._collateral_value(account, checked=False)

    def get_usd_value(self, asset_id: str, amount: int) -> int:
        return self._usd_value(asset_id, amount, checked=False)

    def get_token_amount_from_usd(self, asset_id: str, usd_amount: int) -> int:
        return self._token_amount_from_usd(asset_id, usd_amount, checked=False)

    def get_health_factor(self, account: str) -> int:
        with self._lock:
            return self._health_factor(account, checked=False)

    def get_position(self, account: str) -> PositionData:
        """Everything known about one account, for reporting."""
        with self._lock:
            details: list[AssetDetail] = []
            for asset_id in self._registry.list_assets():
                amount = self._ledger.collateral_of(account, asset_id)
                if amount:
                    price = self._price(asset_id, checked=False)
                    details.append(AssetDetail(asset_id, amount, price, price * amount // PRECISION))
            collateral_value = sum(d.usd_value for d in details)
            total_debt = self._ledger.debt_of(account)
            return PositionData(
                account=account,
                collateral_value_usd=collateral_value,
                total_debt=total_debt,
                health_factor=calculate_health_factor(total_debt, collateral_value),
                collateral_assets=tuple(details),
            )

    def accounts(self) -> tuple[str, ...]:
        with self._lock:
            return self._ledger.accounts()

    @staticmethod
    def calculate_health_factor(total_debt: int, collateral_value_usd: int) -> int:
        return calculate_health_factor(total_debt, collateral_value_usd)

    def get_collateral_tokens(self) -> tuple[str, ...]:
        return self._registry.list_assets()

    def get_collateral_token_price_feed(self, asset_id: str) -> PriceFeed:
        return self._registry.price_oracle_for(asset_id).feed

    def get_stablecoin(self) -> StablecoinToken:
        return self._stablecoin

    @staticmethod
    def get_precision() -> int:
        return PRECISION

    @staticmethod
    def get_additional_feed_precision() -> int:
        return ADDITIONAL_FEED_PRECISION

    @staticmethod
    def get_liquidation_threshold() -> int:
        return LIQUIDATION_THRESHOLD

    @staticmethod
    def get_liquidation_bonus() -> int:
        return LIQUIDATION_BONUS

    @staticmethod
    def get_liquidation_precision() -> int:
        return LIQUIDATION_PRECISION

    @staticmethod
    def get_min_health_factor() -> int:
        return MIN_HEALTH_FACTOR

    @staticmethod
    def get_timeout() -> int:
        return TIMEOUT
