"""Scenario simulation — wires an engine from config and drives it step by step."""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation, localcontext
from pathlib import Path
from typing import Any, Callable

import yaml

from ..config import AppConfig
from ..constants import FEED_DECIMALS, MAX_UINT256, PRECISION
from ..engine import CollateralEngine
from ..errors import EngineError
from ..health import is_healthy
from ..models import PositionData
from ..oracles import PriceOracle, PythPriceSource, StaticPriceFeed
from ..registry import CollateralRegistry
from ..tokens import InMemoryToken, Stablecoin, StablecoinBinding, TokenBinding

logger = logging.getLogger(__name__)

_UNITS = {"wei": 1, "gwei": 10**9, "ether": 10**18}


def to_wei(value: Any) -> int:
    """Parse an amount: a plain integer, or ``"<number> <unit>"`` like ``"0.5 ether"``."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid amount: {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    number, _, unit = text.partition(" ")
    scale = _UNITS.get(unit.strip() or "wei")
    if scale is None:
        raise ValueError(f"Unknown unit in amount: {value!r}")
    with localcontext() as ctx:
        ctx.prec = 100
        try:
            wei = Decimal(number.replace("_", "")) * scale
        except InvalidOperation:
            raise ValueError(f"Invalid amount: {value!r}") from None
    if wei != wei.to_integral_value() or wei < 0:
        raise ValueError(f"Amount has more precision than wei: {value!r}")
    return int(wei)


def load_scenario(path: str | Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Scenario file not found: {path}")
    with open(path) as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw.get("steps", []), list):
        raise ValueError("Scenario 'steps' must be a list")
    return raw


class SimulatedClock:
    """Wall clock that only moves when advanced."""

    def __init__(self, start: float | None = None) -> None:
        self._now = time.time() if start is None else start

    def __call__(self) -> float:
        return self._now

    def advance(self, seconds: float) -> None:
        if seconds < 0:
            raise ValueError("Cannot move the clock backwards")
        self._now += seconds


@dataclass(frozen=True)
class StepResult:
    index: int
    op: str
    ok: bool
    error: str = ""


class Simulator:
    """Owns an engine, its in-memory tokens and its price feeds."""

    def __init__(self, config: AppConfig, clock: SimulatedClock | None = None) -> None:
        self._config = config
        self.address = config.engine.address
        self.clock = clock or SimulatedClock()

        # Build price feeds
        self._static_feeds: dict[str, StaticPriceFeed] = {}
        self._pyth: PythPriceSource | None = None
        oracle_cfg = config.price_oracle
        if oracle_cfg.provider == "pyth":
            self._pyth = PythPriceSource(oracle_cfg.pyth)
            oracles = [
                PriceOracle(self._pyth.feed(c.feed)) for c in config.collateral
            ]
        else:
            for name, answer in oracle_cfg.static.prices.items():
                self._static_feeds[name] = StaticPriceFeed(answer, name, clock=self.clock)
            oracles = [
                PriceOracle(self._static_feeds[c.feed], clock=self.clock)
                for c in config.collateral
            ]

        # Build tokens
        self.tokens: dict[str, InMemoryToken] = {
            c.asset: InMemoryToken(c.asset) for c in config.collateral
        }
        self.stablecoin = Stablecoin(owner=self.address, symbol=config.engine.stablecoin)

        registry = CollateralRegistry(config.asset_ids, oracles)
        self.engine = CollateralEngine(
            registry,
            {asset: TokenBinding(token, self.address) for asset, token in self.tokens.items()},
            StablecoinBinding(self.stablecoin, self.address),
            self.address,
        )
        self._approved: set[str] = set()

        self._ops: dict[str, Callable[[dict[str, Any]], None]] = {
            "deposit_collateral": self._deposit_collateral,
            "mint": self._mint,
            "deposit_collateral_and_mint": self._deposit_collateral_and_mint,
            "burn": self._burn,
            "redeem_collateral": self._redeem_collateral,
            "redeem_collateral_for_debt": self._redeem_collateral_for_debt,
            "liquidate": self._liquidate,
            "set_price": self._set_price,
            "advance_time": self._advance_time,
        }

    # ------------------------------------------------------------------
    # Prices
    # ------------------------------------------------------------------

    async def refresh_prices(self) -> None:
        """Pull fresh prices when running against Pyth; no-op for static feeds."""
        if self._pyth is not None:
            await self._pyth.refresh()

    def set_price(self, feed: str, answer: int) -> None:
        if feed not in self._static_feeds:
            raise ValueError(f"'{feed}' is not a static feed")
        self._static_feeds[feed].update_answer(answer)
        logger.info("Price of %s set to %d", feed, answer)

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def fund(self, account: str, asset_id: str, amount: int) -> None:
        if asset_id == self.stablecoin.symbol:
            self.stablecoin.mint_to(account, amount)
        elif asset_id in self.tokens:
            self.tokens[asset_id].mint_to(account, amount)
        else:
            raise ValueError(f"Unknown token '{asset_id}'")
        self._ensure_approved(account)

    def _ensure_approved(self, account: str) -> None:
        if account in self._approved:
            return
        for token in self.tokens.values():
            token.approve(account, self.address, MAX_UINT256)
        self.stablecoin.approve(account, self.address, MAX_UINT256)
        self._approved.add(account)

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _deposit_collateral(self, step: dict[str, Any]) -> None:
        self._ensure_approved(step["account"])
        self.engine.deposit_collateral(step["account"], step["asset"], to_wei(step["amount"]))

    def _mint(self, step: dict[str, Any]) -> None:
        self.engine.mint(step["account"], to_wei(step["amount"]))

    def _deposit_collateral_and_mint(self, step: dict[str, Any]) -> None:
        self._ensure_approved(step["account"])
        self.engine.deposit_collateral_and_mint(
            step["account"],
            step["asset"],
            to_wei(step["collateral_amount"]),
            to_wei(step["amount"]),
        )

    def _burn(self, step: dict[str, Any]) -> None:
        self._ensure_approved(step["account"])
        self.engine.burn(step["account"], to_wei(step["amount"]))

    def _redeem_collateral(self, step: dict[str, Any]) -> None:
        self.engine.redeem_collateral(step["account"], step["asset"], to_wei(step["amount"]))

    def _redeem_collateral_for_debt(self, step: dict[str, Any]) -> None:
        self._ensure_approved(step["account"])
        self.engine.redeem_collateral_for_debt(
            step["account"],
            step["asset"],
            to_wei(step["collateral_amount"]),
            to_wei(step["amount"]),
        )

    def _liquidate(self, step: dict[str, Any]) -> None:
        self._ensure_approved(step["liquidator"])
        self.engine.liquidate(
            step["liquidator"], step["asset"], step["user"], to_wei(step["debt_to_cover"])
        )

    def _set_price(self, step: dict[str, Any]) -> None:
        self.set_price(step["feed"], int(step["answer"]))

    def _advance_time(self, step: dict[str, Any]) -> None:
        if self._pyth is not None:
            raise ValueError("advance_time is only available with static feeds")
        self.clock.advance(float(step["seconds"]))

    def run_step(self, index: int, step: dict[str, Any]) -> StepResult:
        op = step.get("op", "")
        handler = self._ops.get(op)
        if handler is None:
            return StepResult(index, op, ok=False, error=f"Unknown op '{op}'")

        expected = step.get("expect")
        try:
            handler(step)
        except EngineError as e:
            if expected == type(e).__name__:
                logger.info("Step %d (%s) failed as expected: %s", index, op, e)
                return StepResult(index, op, ok=True, error=type(e).__name__)
            logger.error("Step %d (%s) failed: %s", index, op, e)
            return StepResult(index, op, ok=False, error=f"{type(e).__name__}: {e}")
        except (KeyError, ValueError) as e:
            logger.error("Step %d (%s) is malformed: %s", index, op, e)
            return StepResult(index, op, ok=False, error=f"Malformed step: {e}")

        if expected:
            return StepResult(index, op, ok=False, error=f"Expected {expected}, step succeeded")
        return StepResult(index, op, ok=True)

    def run(self, scenario: dict[str, Any]) -> list[StepResult]:
        """Fund the scenario's accounts and execute its steps in order."""
        for account, holdings in scenario.get("balances", {}).items():
            for asset_id, amount in holdings.items():
                self.fund(account, asset_id, to_wei(amount))

        results = [
            self.run_step(i, step) for i, step in enumerate(scenario.get("steps", []), start=1)
        ]
        failed = sum(1 for r in results if not r.ok)
        logger.info("Scenario finished: %d steps, %d failed", len(results), failed)
        return results

    # ------------------------------------------------------------------
    # Formatting helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _format_account(address: str) -> str:
        if len(address) > 16:
            return f"{address[:10]}...{address[-6:]}"
        return address

    @staticmethod
    def _get_status(health_factor: int) -> str:
        if health_factor == MAX_UINT256:
            return "✅ No debt"
        if is_healthy(health_factor):
            return "✅ Healthy"
        return "🚨 Liquidatable"

    @staticmethod
    def _now_str() -> str:
        return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S")

    @staticmethod
    def _usd(value: int) -> str:
        return f"${Decimal(value) / PRECISION:,.2f}"

    @staticmethod
    def _format_health_factor(health_factor: int) -> str:
        if health_factor == MAX_UINT256:
            return "∞"
        return f"{Decimal(health_factor) / PRECISION:.4f}"

    def _build_position_message(self, position: PositionData) -> str:
        assets = "\n".join(
            f"  {d.asset_id}: {Decimal(d.amount) / PRECISION:,.6f} @ "
            f"{self._usd(d.price)} = {self._usd(d.usd_value)}"
            for d in position.collateral_assets
        ) or "  —"
        return (
            f"{self._format_account(position.account)} · {self._get_status(position.health_factor)}\n"
            f"Collateral: {self._usd(position.collateral_value_usd)}\n"
            f"{assets}\n"
            f"Debt: {self._usd(position.total_debt)}\n"
            f"HF: {self._format_health_factor(position.health_factor)}"
        )

    def build_report(self) -> str:
        """Position report for every account the engine has seen."""
        sections = [
            self._build_position_message(self.engine.get_position(account))
            for account in self.engine.accounts()
        ]
        body = "\n\n".join(sections) if sections else "No positions."
        return (
            f"📋 Position Report\n"
            f"\n"
            f"{body}\n"
            f"\n"
            f"{self._now_str()} UTC"
        )

    def build_assets_table(self) -> str:
        lines = []
        for asset_id in self.engine.get_collateral_tokens():
            feed = self.engine.get_collateral_token_price_feed(asset_id)
            answer = feed.latest_round_data().answer
            lines.append(
                f"{asset_id:<10} {feed.description:<12} ${answer / 10**FEED_DECIMALS:,.4f}"
            )
        return "\n".join(lines)
