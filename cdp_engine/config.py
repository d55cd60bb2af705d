"""Configuration loader — reads config.yaml, interpolates env vars, validates."""
from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

logger = logging.getLogger(__name__)

PROVIDERS = ("static", "pyth")

# ---------------------------------------------------------------------------
# Frozen config dataclasses
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class EngineConfig:
    address: str = ""
    stablecoin: str = "DSC"


@dataclass(frozen=True)
class CollateralConfig:
    asset: str = ""
    feed: str = ""


@dataclass(frozen=True)
class StaticFeedsConfig:
    prices: dict[str, int] = field(default_factory=dict)


@dataclass(frozen=True)
class PythConfig:
    hermes_url: str = "https://hermes.pyth.network/v2/updates/price/latest"
    feeds: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PriceOracleConfig:
    provider: str = "static"
    static: StaticFeedsConfig = field(default_factory=StaticFeedsConfig)
    pyth: PythConfig = field(default_factory=PythConfig)

    def feed_names(self) -> set[str]:
        if self.provider == "pyth":
            return set(self.pyth.feeds)
        return set(self.static.prices)


@dataclass(frozen=True)
class AppConfig:
    engine: EngineConfig = field(default_factory=EngineConfig)
    collateral: tuple[CollateralConfig, ...] = ()
    price_oracle: PriceOracleConfig = field(default_factory=PriceOracleConfig)

    @property
    def asset_ids(self) -> tuple[str, ...]:
        return tuple(c.asset for c in self.collateral)


# ---------------------------------------------------------------------------
# Env interpolation
# ---------------------------------------------------------------------------

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)}")


def _interpolate_env(value: Any) -> Any:
    """Recursively replace ${VAR} references with environment variable values."""
    if isinstance(value, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), ""), value)
    if isinstance(value, dict):
        return {k: _interpolate_env(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_interpolate_env(item) for item in value]
    return value


# ---------------------------------------------------------------------------
# YAML → dataclass builders
# ---------------------------------------------------------------------------


def _build_engine(raw: dict[str, Any]) -> EngineConfig:
    return EngineConfig(
        address=str(raw.get("address", "")),
        stablecoin=str(raw.get("stablecoin", "DSC")),
    )


def _build_collateral(raw: list[dict[str, Any]]) -> tuple[CollateralConfig, ...]:
    entries: list[CollateralConfig] = []
    for c in raw:
        entries.append(
            CollateralConfig(
                asset=str(c.get("asset", "")),
                feed=str(c.get("feed", "")),
            )
        )
    return tuple(entries)


def _build_price_oracle(raw: dict[str, Any]) -> PriceOracleConfig:
    static_raw = raw.get("static", {})
    pyth_raw = raw.get("pyth", {})
    return PriceOracleConfig(
        provider=raw.get("provider", "static"),
        static=StaticFeedsConfig(
            # env interpolation yields strings, so answers are coerced here
            prices={k: int(v) for k, v in static_raw.get("prices", {}).items()},
        ),
        pyth=PythConfig(
            hermes_url=pyth_raw.get("hermes_url", PythConfig.hermes_url),
            feeds=dict(pyth_raw.get("feeds", {})),
        ),
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def load_config(config_path: str | Path | None = None) -> AppConfig:
    """Load and validate engine configuration from YAML + .env.

    Args:
        config_path: Path to config.yaml. Defaults to ``config.yaml`` in the
            project root (one level up from this package).
    """
    load_dotenv()

    if config_path is None:
        config_path = Path(__file__).resolve().parent.parent / "config.yaml"
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    raw = _interpolate_env(raw)

    cfg = AppConfig(
        engine=_build_engine(raw.get("engine", {})),
        collateral=_build_collateral(raw.get("collateral", [])),
        price_oracle=_build_price_oracle(raw.get("price_oracle", {})),
    )

    _validate(cfg)
    logger.info("Configuration loaded from %s", config_path)
    return cfg


def _validate(cfg: AppConfig) -> None:
    """Raise on invalid configuration."""
    if not cfg.engine.address:
        raise ValueError("Engine address must be configured")

    if cfg.price_oracle.provider not in PROVIDERS:
        raise ValueError(
            f"Unknown price oracle provider '{cfg.price_oracle.provider}'"
        )

    if not cfg.collateral:
        raise ValueError("At least one collateral asset must be configured")

    seen: set[str] = set()
    feeds = cfg.price_oracle.feed_names()
    for entry in cfg.collateral:
        if not entry.asset:
            raise ValueError("Collateral entry has no asset")
        if entry.asset in seen:
            raise ValueError(f"Collateral '{entry.asset}' is configured twice")
        seen.add(entry.asset)
        if entry.feed not in feeds:
            raise ValueError(
                f"Collateral '{entry.asset}' references unknown feed '{entry.feed}'"
            )
