"""
config.py - Construction-time configuration

The asset registry and engine configuration are built once, validated,
and never mutated afterwards. The engine holds a reference to them; no
runtime API adds, removes or rebinds an asset.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from datetime import timedelta
from types import MappingProxyType
from typing import Mapping, Sequence, Tuple

from .core import (
    AssetLedger, IssuanceAuthority, PriceFeed,
    AssetNotAllowed, InvalidConfiguration,
)
from .oracle import DEFAULT_STALE_PRICE_TIMEOUT


@dataclass(frozen=True)
class AssetRegistry:
    """
    Accepted collateral assets and their price feeds.

    Attributes:
        assets: Asset symbols in stable iteration order
        tokens: Asset symbol -> asset ledger
        price_feeds: Asset symbol -> USD price feed

    The ordered list and both mappings are validated to hold exactly the
    same symbols. Use from_lists() to build one.
    """
    assets: Tuple[str, ...]
    tokens: Mapping[str, AssetLedger]
    price_feeds: Mapping[str, PriceFeed]

    def __post_init__(self):
        if not self.assets:
            raise InvalidConfiguration("Registry needs at least one collateral asset")
        if len(set(self.assets)) != len(self.assets):
            raise InvalidConfiguration(f"Duplicate collateral assets: {list(self.assets)}")
        symbols = set(self.assets)
        if set(self.tokens) != symbols:
            raise InvalidConfiguration("Token ledgers do not match accepted assets")
        if set(self.price_feeds) != symbols:
            raise InvalidConfiguration("Price feeds do not match accepted assets")
        for symbol in self.assets:
            if self.price_feeds[symbol] is None:
                raise InvalidConfiguration(f"Asset {symbol} has no price feed")
        # Read-only views so the registry cannot be rebound after construction
        object.__setattr__(self, 'tokens', MappingProxyType(dict(self.tokens)))
        object.__setattr__(self, 'price_feeds', MappingProxyType(dict(self.price_feeds)))

    @classmethod
    def from_lists(
        cls,
        tokens: Sequence[AssetLedger],
        price_feeds: Sequence[PriceFeed],
    ) -> AssetRegistry:
        """
        Pair tokens with feeds positionally.

        Raises:
            InvalidConfiguration: If the two lists differ in length
        """
        if len(tokens) != len(price_feeds):
            raise InvalidConfiguration(
                f"Token and price feed lists must be the same length: "
                f"{len(tokens)} != {len(price_feeds)}"
            )
        return cls(
            assets=tuple(t.symbol for t in tokens),
            tokens={t.symbol: t for t in tokens},
            price_feeds={t.symbol: f for t, f in zip(tokens, price_feeds)},
        )

    def is_allowed(self, asset: str) -> bool:
        return asset in self.price_feeds

    def require_allowed(self, asset: str) -> None:
        if asset not in self.price_feeds:
            raise AssetNotAllowed(asset)

    def token(self, asset: str) -> AssetLedger:
        self.require_allowed(asset)
        return self.tokens[asset]

    def feed(self, asset: str) -> PriceFeed:
        self.require_allowed(asset)
        return self.price_feeds[asset]


@dataclass(frozen=True)
class EngineConfig:
    """
    Everything the engine is wired to at construction.

    Attributes:
        registry: Accepted collateral assets and feeds
        debt_token: Asset ledger of the debt token (pulls on burn)
        debt_authority: Capability to issue and destroy debt tokens
        stale_price_timeout: Maximum age of a usable price (default 3 hours)
    """
    registry: AssetRegistry
    debt_token: AssetLedger
    debt_authority: IssuanceAuthority
    stale_price_timeout: timedelta = field(default=DEFAULT_STALE_PRICE_TIMEOUT)

    def __post_init__(self):
        if self.debt_token is None or self.debt_authority is None:
            raise InvalidConfiguration("Debt token and issuance authority are required")
        if self.stale_price_timeout <= timedelta(0):
            raise InvalidConfiguration(
                f"stale_price_timeout must be positive, got {self.stale_price_timeout}"
            )
        if self.debt_token.symbol in self.registry.price_feeds:
            raise InvalidConfiguration(
                f"Debt token {self.debt_token.symbol} cannot be accepted as collateral"
            )
