"""
conftest.py - Shared pytest fixtures for engine tests

Provides common fixtures used across unit, conformance and functional tests:
- Collateral token ledgers and price feeds (WETH at $2000, WBTC at $1000)
- The debt token and a fully wired two-asset engine
- Engines with pre-built positions (deposited, minted)
"""

import pytest
from datetime import datetime, timedelta

from stablecoin import (
    AssetRegistry, EngineConfig, StablecoinEngine,
    StableToken, StaticPriceFeed, TokenLedger,
)

from tests.fake_collaborators import (
    T0, ETH_USD_PRICE, BTC_USD_PRICE,
    AMOUNT_COLLATERAL, AMOUNT_TO_MINT, STARTING_BALANCE,
    fund,
)


# =============================================================================
# COLLABORATOR FIXTURES
# =============================================================================

@pytest.fixture
def weth():
    return TokenLedger("WETH", "Wrapped Ether")


@pytest.fixture
def wbtc():
    """8-decimal collateral, like the real wrapped bitcoin."""
    return TokenLedger("WBTC", "Wrapped Bitcoin", decimals=8)


@pytest.fixture
def eth_feed():
    return StaticPriceFeed(ETH_USD_PRICE, updated_at=T0)


@pytest.fixture
def btc_feed():
    return StaticPriceFeed(BTC_USD_PRICE, updated_at=T0)


@pytest.fixture
def dsc():
    return StableToken()


# =============================================================================
# ENGINE FIXTURES
# =============================================================================

@pytest.fixture
def config(weth, wbtc, eth_feed, btc_feed, dsc):
    return EngineConfig(
        registry=AssetRegistry.from_lists([weth, wbtc], [eth_feed, btc_feed]),
        debt_token=dsc,
        debt_authority=dsc.issuance_authority(),
    )


@pytest.fixture
def engine(config):
    """Two-asset engine at T0 with quiet output."""
    return StablecoinEngine(config, name="test", initial_time=T0, verbose=False)


@pytest.fixture
def funded(engine, weth):
    """Alice holds STARTING_BALANCE WETH, fully approved."""
    fund(weth, "alice", STARTING_BALANCE)
    return engine


@pytest.fixture
def deposited(funded):
    """Alice has AMOUNT_COLLATERAL WETH deposited and no debt."""
    funded.deposit_collateral("alice", "WETH", AMOUNT_COLLATERAL)
    return funded


@pytest.fixture
def minted(funded):
    """Alice has AMOUNT_COLLATERAL WETH deposited and AMOUNT_TO_MINT debt."""
    funded.deposit_collateral_and_mint("alice", "WETH", AMOUNT_COLLATERAL, AMOUNT_TO_MINT)
    return funded


@pytest.fixture
def later():
    """Return a time offset from T0."""
    def _later(**kwargs) -> datetime:
        return T0 + timedelta(**kwargs)
    return _later
