"""
Core types and pure helpers for the synthetic-dollar engine.

This module provides the foundational pieces shared by every other module:
1. Fixed-point constants: precision, liquidation parameters, health bounds
2. Protocols: AssetLedger, IssuanceAuthority, PriceFeed, Revertible
3. Exceptions: EngineError and the domain-specific error types
4. Immutable event records written to the engine's audit trail
5. Unit helpers: conversion between human Decimals and smallest-unit ints

Nothing in this module mutates engine state.
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, ROUND_DOWN, ROUND_HALF_EVEN, getcontext
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# DECIMAL CONTEXT CONFIGURATION
# ============================================================================
#
# Ledger amounts are integers in the smallest unit of each token. Decimal is
# only used at the edges (human-readable input and display), but those
# conversions must be exact for 18-decimal tokens holding large balances.
#
# Context parameters:
#   - prec=78: enough digits for any 256-bit amount
#   - rounding=ROUND_HALF_EVEN: unbiased default; conversions pick their own
#
_ENGINE_DECIMAL_CONTEXT = getcontext()
_ENGINE_DECIMAL_CONTEXT.prec = 78
_ENGINE_DECIMAL_CONTEXT.rounding = ROUND_HALF_EVEN


# ============================================================================
# CONSTANTS
# ============================================================================

# Shared fixed-point scale for USD values, the debt token and health factors.
PRECISION = 10 ** 18

# Scale-up for the standard 8-decimal USD price feed (8 + 10 = 18).
ADDITIONAL_FEED_PRECISION = 10 ** 10

# Debt may be minted up to 50% of collateral value (200% overcollateralized).
LIQUIDATION_THRESHOLD = 50
# Liquidators receive 10% extra collateral on top of the debt they cover.
LIQUIDATION_BONUS = 10
LIQUIDATION_PRECISION = 100

MIN_HEALTH_FACTOR = PRECISION
# Health factor of an account with no debt.
MAX_HEALTH_FACTOR = 2 ** 256 - 1

DEBT_TOKEN_DECIMALS = 18

# Wallet in every asset ledger that holds tokens in engine custody.
CUSTODY_WALLET = "engine"

# Derived account status (never stored).
ACCOUNT_STATUS_NO_DEBT = "NO_DEBT"
ACCOUNT_STATUS_SOLVENT = "SOLVENT"
ACCOUNT_STATUS_UNDERCOLLATERALIZED = "UNDERCOLLATERALIZED"


# ============================================================================
# TYPE ALIASES
# ============================================================================

# Mapping from asset symbol to smallest-unit quantity held by one account.
CollateralMap = Dict[str, int]

# (price, updated_at) as returned by a price feed.
RoundData = Tuple[int, datetime]


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class AssetLedger(Protocol):
    """
    Balance-transfer ledger for a single token.

    Transfers move tokens between an account and the engine's custody
    wallet. Both directions report failure by returning False; callers
    must check the result.
    """
    symbol: str
    decimals: int
    custody_wallet: str

    def transfer_in(self, source: str, amount: int) -> bool:
        """Move amount from source into custody."""
        ...

    def transfer_out(self, dest: str, amount: int) -> bool:
        """Move amount from custody to dest."""
        ...

    def balance_of(self, account: str) -> int:
        ...


@runtime_checkable
class IssuanceAuthority(Protocol):
    """Capability to create and destroy debt tokens."""

    def issue(self, account: str, amount: int) -> bool:
        ...

    def destroy(self, amount: int) -> None:
        """Irreversibly destroy amount of debt token held in custody."""
        ...


@runtime_checkable
class PriceFeed(Protocol):
    """
    Read-only price source for one asset, quoted in USD.

    latest_price() returns the raw signed price with `decimals` decimal
    places and the time of the last update.
    """
    decimals: int

    def latest_price(self) -> RoundData:
        ...


@runtime_checkable
class Revertible(Protocol):
    """
    Collaborator whose state can be captured and restored.

    The engine snapshots every revertible collaborator before a mutating
    operation and restores it if the operation aborts. Transfers made on
    any other collaborator are undone by an opposite transfer.
    """

    def snapshot(self) -> Any:
        ...

    def revert(self, snapshot: Any) -> None:
        ...


# ============================================================================
# EXCEPTIONS
# ============================================================================

class EngineError(Exception):
    """Base exception for all engine errors."""
    pass


class InvalidConfiguration(EngineError):
    """Raised when the asset registry or engine config is malformed."""
    pass


class InvalidInput(EngineError, ValueError):
    """Raised for a non-positive amount where a positive one is required."""
    pass


class AssetNotAllowed(InvalidInput):
    """Raised when an operation references an unregistered collateral asset."""

    def __init__(self, asset: str):
        super().__init__(f"Asset {asset} is not an accepted collateral")
        self.asset = asset


class TransferFailed(EngineError):
    """Raised when an asset or debt-token transfer reports failure."""
    pass


class MintFailed(EngineError):
    """Raised when the issuance authority declines to mint."""
    pass


class InsufficientBalance(EngineError):
    """Raised when a redemption or burn exceeds the recorded balance."""
    pass


class HealthFactorBroken(EngineError):
    """Raised when an operation would leave an account below MIN_HEALTH_FACTOR."""

    def __init__(self, account: str, health_factor: int):
        super().__init__(
            f"Health factor of {account} would be {health_factor} "
            f"< min {MIN_HEALTH_FACTOR}"
        )
        self.account = account
        self.health_factor = health_factor


class HealthFactorOk(EngineError):
    """Raised when liquidating an account that is not undercollateralized."""

    def __init__(self, account: str, health_factor: int):
        super().__init__(
            f"Cannot liquidate {account}: health factor {health_factor} "
            f">= min {MIN_HEALTH_FACTOR}"
        )
        self.account = account
        self.health_factor = health_factor


class HealthFactorNotImproved(EngineError):
    """Raised when a liquidation fails to lift the target above MIN_HEALTH_FACTOR."""

    def __init__(self, account: str, starting: int, ending: int):
        super().__init__(
            f"Liquidation of {account} did not restore solvency: "
            f"{starting} -> {ending}"
        )
        self.account = account
        self.starting = starting
        self.ending = ending


class OracleError(EngineError):
    """Base class for unusable price data."""
    pass


class StalePrice(OracleError):
    """Raised when the last price update is older than the staleness bound."""
    pass


class InvalidPrice(OracleError):
    """Raised when a feed reports a non-positive price."""
    pass


class ReentrantCall(EngineError):
    """Raised when a mutating operation is entered while another is in flight."""
    pass


# ============================================================================
# EVENTS
# ============================================================================
#
# Event records are appended to the engine's event_log when an operation
# commits. sequence_number is monotonic within one engine.

@dataclass(frozen=True, slots=True)
class CollateralDeposited:
    account: str
    asset: str
    amount: int
    sequence_number: int = 0
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class CollateralRedeemed:
    redeemed_from: str
    redeemed_to: str
    asset: str
    amount: int
    sequence_number: int = 0
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class DebtMinted:
    account: str
    amount: int
    sequence_number: int = 0
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class DebtBurned:
    on_behalf_of: str
    debt_from: str
    amount: int
    sequence_number: int = 0
    timestamp: Optional[datetime] = None


@dataclass(frozen=True, slots=True)
class Liquidated:
    liquidator: str
    account: str
    asset: str
    debt_covered: int
    collateral_seized: int
    sequence_number: int = 0
    timestamp: Optional[datetime] = None


# ============================================================================
# UNIT HELPERS
# ============================================================================

def to_units(amount: Decimal, decimals: int = 18) -> int:
    """
    Convert a human-readable amount to smallest units, rounding down.

    Example:
        to_units(Decimal("0.05")) == 50_000_000_000_000_000
    """
    if not isinstance(amount, Decimal):
        amount = Decimal(str(amount))
    scaled = amount.scaleb(decimals)
    return int(scaled.to_integral_value(rounding=ROUND_DOWN))


def from_units(amount: int, decimals: int = 18) -> Decimal:
    """Convert smallest units back to a Decimal amount."""
    return Decimal(amount).scaleb(-decimals)


def require_positive(amount: int, name: str = "amount") -> None:
    """Raise InvalidInput unless amount is an int greater than zero."""
    if isinstance(amount, bool) or not isinstance(amount, int):
        raise InvalidInput(f"{name} must be an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidInput(f"{name} must be more than zero, got {amount}")
