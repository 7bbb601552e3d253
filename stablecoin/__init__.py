"""
stablecoin - Overcollateralized Synthetic-Dollar Engine

Accounting and risk-control core for a dollar-pegged debt token minted
against volatile collateral. Every account must stay at or above a 200%
collateralization ratio, checked with live oracle prices after each
operation; undercollateralized accounts can be liquidated by anyone.

Usage:
    from datetime import datetime
    from decimal import Decimal
    from stablecoin import (
        StablecoinEngine, EngineConfig, AssetRegistry,
        TokenLedger, StableToken, StaticPriceFeed, to_units,
    )

    t0 = datetime(2025, 1, 1)
    weth = TokenLedger("WETH", "Wrapped Ether")
    eth_usd = StaticPriceFeed(2000_00000000, updated_at=t0)
    dsc = StableToken()

    engine = StablecoinEngine(
        EngineConfig(
            registry=AssetRegistry.from_lists([weth], [eth_usd]),
            debt_token=dsc,
            debt_authority=dsc.issuance_authority(),
        ),
        initial_time=t0,
    )

    weth.mint_to("alice", to_units(Decimal("10")))
    weth.approve("alice", to_units(Decimal("10")))
    engine.deposit_collateral_and_mint(
        "alice", "WETH", to_units(Decimal("10")), to_units(Decimal("100"))
    )
"""

# Core types
from .core import (
    AssetLedger,
    IssuanceAuthority,
    PriceFeed,
    Revertible,
    CollateralDeposited,
    CollateralRedeemed,
    DebtMinted,
    DebtBurned,
    Liquidated,
    EngineError,
    InvalidConfiguration,
    InvalidInput,
    AssetNotAllowed,
    TransferFailed,
    MintFailed,
    InsufficientBalance,
    HealthFactorBroken,
    HealthFactorOk,
    HealthFactorNotImproved,
    OracleError,
    StalePrice,
    InvalidPrice,
    ReentrantCall,
    to_units,
    from_units,
    PRECISION,
    ADDITIONAL_FEED_PRECISION,
    LIQUIDATION_THRESHOLD,
    LIQUIDATION_BONUS,
    LIQUIDATION_PRECISION,
    MIN_HEALTH_FACTOR,
    MAX_HEALTH_FACTOR,
    CUSTODY_WALLET,
    ACCOUNT_STATUS_NO_DEBT,
    ACCOUNT_STATUS_SOLVENT,
    ACCOUNT_STATUS_UNDERCOLLATERALIZED,
)

# Configuration
from .config import AssetRegistry, EngineConfig

# Price feeds
from .oracle import (
    PriceQuote,
    StaticPriceFeed,
    TimeSeriesPriceFeed,
    stale_checked_price,
    DEFAULT_STALE_PRICE_TIMEOUT,
)

# Token ledgers
from .tokens import TokenLedger, StableToken, StableTokenAuthority

# Position ledger
from .positions import PositionLedger

# Solvency math
from .solvency import (
    LiquidationQuote,
    calculate_usd_value,
    calculate_token_amount_from_usd,
    calculate_collateral_value,
    calculate_health_factor,
    calculate_liquidation_payout,
    classify_account,
)

# Engine
from .engine import StablecoinEngine, ReentrancyGuard

__all__ = [
    # Protocols
    'AssetLedger', 'IssuanceAuthority', 'PriceFeed', 'Revertible',
    # Events
    'CollateralDeposited', 'CollateralRedeemed', 'DebtMinted', 'DebtBurned', 'Liquidated',
    # Exceptions
    'EngineError', 'InvalidConfiguration', 'InvalidInput', 'AssetNotAllowed',
    'TransferFailed', 'MintFailed', 'InsufficientBalance',
    'HealthFactorBroken', 'HealthFactorOk', 'HealthFactorNotImproved',
    'OracleError', 'StalePrice', 'InvalidPrice', 'ReentrantCall',
    # Helpers and constants
    'to_units', 'from_units',
    'PRECISION', 'ADDITIONAL_FEED_PRECISION', 'LIQUIDATION_THRESHOLD',
    'LIQUIDATION_BONUS', 'LIQUIDATION_PRECISION', 'MIN_HEALTH_FACTOR',
    'MAX_HEALTH_FACTOR', 'CUSTODY_WALLET',
    'ACCOUNT_STATUS_NO_DEBT', 'ACCOUNT_STATUS_SOLVENT', 'ACCOUNT_STATUS_UNDERCOLLATERALIZED',
    # Configuration
    'AssetRegistry', 'EngineConfig',
    # Price feeds
    'PriceQuote', 'StaticPriceFeed', 'TimeSeriesPriceFeed', 'stale_checked_price',
    'DEFAULT_STALE_PRICE_TIMEOUT',
    # Tokens
    'TokenLedger', 'StableToken', 'StableTokenAuthority',
    # Positions
    'PositionLedger',
    # Solvency
    'LiquidationQuote', 'calculate_usd_value', 'calculate_token_amount_from_usd',
    'calculate_collateral_value', 'calculate_health_factor',
    'calculate_liquidation_payout', 'classify_account',
    # Engine
    'StablecoinEngine', 'ReentrancyGuard',
]

__version__ = '1.0.0'
