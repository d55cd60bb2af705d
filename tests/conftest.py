"""Shared test fixtures and sample data."""
from __future__ import annotations

import textwrap
from pathlib import Path

import pytest

from cdp_engine.config import (
    AppConfig,
    CollateralConfig,
    EngineConfig,
    PriceOracleConfig,
    PythConfig,
    StaticFeedsConfig,
)
from cdp_engine.constants import MAX_UINT256
from cdp_engine.engine import CollateralEngine
from cdp_engine.oracles import PriceOracle, StaticPriceFeed
from cdp_engine.registry import CollateralRegistry
from cdp_engine.services import SimulatedClock
from cdp_engine.tokens import InMemoryToken, Stablecoin, StablecoinBinding, TokenBinding

ENGINE = "0xENGINE"
USER = "0xUSER"
LIQUIDATOR = "0xLIQUIDATOR"

ETH_USD_PRICE = 2000 * 10**8
BTC_USD_PRICE = 1000 * 10**8

COLLATERAL_AMOUNT = 10 * 10**18
AMOUNT_TO_MINT = 100 * 10**18
COLLATERAL_TO_COVER = 20 * 10**18
STARTING_BALANCE = 100 * 10**18

START_TIME = 1_700_000_000


def fund(token: InMemoryToken, account: str, amount: int) -> None:
    """Give ``account`` tokens and approve the engine to pull all of them."""
    token.mint_to(account, amount)
    token.approve(account, ENGINE, MAX_UINT256)


# ---------------------------------------------------------------------------
# Price fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def clock() -> SimulatedClock:
    return SimulatedClock(start=START_TIME)


@pytest.fixture()
def eth_usd(clock: SimulatedClock) -> StaticPriceFeed:
    return StaticPriceFeed(ETH_USD_PRICE, "ETH_USD", clock=clock)


@pytest.fixture()
def btc_usd(clock: SimulatedClock) -> StaticPriceFeed:
    return StaticPriceFeed(BTC_USD_PRICE, "BTC_USD", clock=clock)


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def weth() -> InMemoryToken:
    return InMemoryToken("WETH")


@pytest.fixture()
def wbtc() -> InMemoryToken:
    return InMemoryToken("WBTC")


@pytest.fixture()
def dsc() -> Stablecoin:
    return Stablecoin(owner=ENGINE)


@pytest.fixture()
def registry(
    eth_usd: StaticPriceFeed, btc_usd: StaticPriceFeed, clock: SimulatedClock
) -> CollateralRegistry:
    return CollateralRegistry(
        ["WETH", "WBTC"],
        [PriceOracle(eth_usd, clock=clock), PriceOracle(btc_usd, clock=clock)],
    )


@pytest.fixture()
def engine(
    registry: CollateralRegistry,
    weth: InMemoryToken,
    wbtc: InMemoryToken,
    dsc: Stablecoin,
) -> CollateralEngine:
    return CollateralEngine(
        registry,
        {"WETH": TokenBinding(weth, ENGINE), "WBTC": TokenBinding(wbtc, ENGINE)},
        StablecoinBinding(dsc, ENGINE),
        ENGINE,
    )


@pytest.fixture()
def funded_user(weth: InMemoryToken, wbtc: InMemoryToken, dsc: Stablecoin) -> str:
    fund(weth, USER, STARTING_BALANCE)
    fund(wbtc, USER, STARTING_BALANCE)
    dsc.approve(USER, ENGINE, MAX_UINT256)
    return USER


@pytest.fixture()
def deposited(engine: CollateralEngine, funded_user: str) -> str:
    engine.deposit_collateral(funded_user, "WETH", COLLATERAL_AMOUNT)
    return funded_user


@pytest.fixture()
def deposited_and_minted(engine: CollateralEngine, funded_user: str) -> str:
    engine.deposit_collateral_and_mint(funded_user, "WETH", COLLATERAL_AMOUNT, AMOUNT_TO_MINT)
    return funded_user


@pytest.fixture()
def events(engine: CollateralEngine) -> list:
    received: list = []
    engine.subscribe(received.append)
    return received


# ---------------------------------------------------------------------------
# Config fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def sample_pyth_config() -> PythConfig:
    return PythConfig(
        hermes_url="https://hermes.pyth.network/v2/updates/price/latest",
        feeds={"ETH_USD": "aaa111", "BTC_USD": "bbb222"},
    )


@pytest.fixture()
def sample_app_config() -> AppConfig:
    return AppConfig(
        engine=EngineConfig(address=ENGINE, stablecoin="DSC"),
        collateral=(
            CollateralConfig(asset="WETH", feed="ETH_USD"),
            CollateralConfig(asset="WBTC", feed="BTC_USD"),
        ),
        price_oracle=PriceOracleConfig(
            provider="static",
            static=StaticFeedsConfig(
                prices={"ETH_USD": ETH_USD_PRICE, "BTC_USD": BTC_USD_PRICE}
            ),
        ),
    )


@pytest.fixture()
def pyth_app_config(sample_pyth_config: PythConfig) -> AppConfig:
    return AppConfig(
        engine=EngineConfig(address=ENGINE),
        collateral=(
            CollateralConfig(asset="WETH", feed="ETH_USD"),
            CollateralConfig(asset="WBTC", feed="BTC_USD"),
        ),
        price_oracle=PriceOracleConfig(provider="pyth", pyth=sample_pyth_config),
    )


# ---------------------------------------------------------------------------
# Config YAML fixture
# ---------------------------------------------------------------------------

SAMPLE_YAML = textwrap.dedent("""\
    engine:
      address: "0xENGINE"
      stablecoin: DSC
    collateral:
      - asset: WETH
        feed: ETH_USD
      - asset: WBTC
        feed: BTC_USD
    price_oracle:
      provider: static
      static:
        prices: {ETH_USD: 200000000000, BTC_USD: 100000000000}
      pyth:
        hermes_url: "https://hermes.example.com"
        feeds: {ETH_USD: "aaa", BTC_USD: "bbb"}
""")


@pytest.fixture()
def sample_yaml_path(tmp_path: Path) -> Path:
    cfg_file = tmp_path / "config.yaml"
    cfg_file.write_text(SAMPLE_YAML)
    return cfg_file
