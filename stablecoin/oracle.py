"""
oracle.py - USD price feeds and staleness checks

Provides the price sources that back each accepted collateral asset.

Classes:
- PriceQuote: A validated, normalized price read
- StaticPriceFeed: Manually updated price (mock aggregator)
- TimeSeriesPriceFeed: Price path replayed against a clock

Functions:
- stale_checked_price: Read a feed and reject stale or non-positive data

Feeds return raw signed integers with `decimals` decimal places. Nothing
here caches a price: every valuation reads the feed again.
"""

from __future__ import annotations
from bisect import bisect_right
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from .core import (
    PRECISION,
    PriceFeed, RoundData,
    InvalidPrice, StalePrice,
)


# Default maximum age of a price update (3 hours).
DEFAULT_STALE_PRICE_TIMEOUT = timedelta(hours=3)

# Decimals of a standard USD aggregator.
DEFAULT_FEED_DECIMALS = 8


@dataclass(frozen=True, slots=True)
class PriceQuote:
    """
    A price read that passed validation.

    Attributes:
        price: Raw feed price (feed decimals)
        decimals: Feed decimal places
        updated_at: Time of the feed's last update
    """
    price: int
    decimals: int
    updated_at: datetime

    @property
    def normalized(self) -> int:
        """Price scaled to PRECISION (18 decimals)."""
        return self.price * PRECISION // 10 ** self.decimals


def stale_checked_price(feed: PriceFeed, now: datetime, timeout: timedelta) -> PriceQuote:
    """
    Read the latest price and verify it is usable.

    Args:
        feed: Price feed to read
        now: Current time used for the age check
        timeout: Maximum tolerated age of the last update

    Returns:
        PriceQuote for the current round

    Raises:
        StalePrice: If now - updated_at exceeds timeout
        InvalidPrice: If the reported price is zero or negative
    """
    price, updated_at = feed.latest_price()
    if updated_at is None or now - updated_at > timeout:
        raise StalePrice(f"Price last updated at {updated_at}, now {now} (timeout {timeout})")
    if price <= 0:
        raise InvalidPrice(f"Feed reported non-positive price {price}")
    return PriceQuote(price=price, decimals=feed.decimals, updated_at=updated_at)


class StaticPriceFeed:
    """
    Price feed holding a single answer until it is updated.

    Mirrors a mock aggregator: tests set the answer and its timestamp
    explicitly to simulate crashes and stale rounds.
    """

    def __init__(
        self,
        initial_answer: int,
        updated_at: datetime,
        decimals: int = DEFAULT_FEED_DECIMALS,
    ):
        """
        Initialize with an answer.

        Args:
            initial_answer: Raw price with `decimals` decimal places
            updated_at: Time of this answer
            decimals: Feed decimal places (default: 8)
        """
        self.decimals = decimals
        self.answer = initial_answer
        self.updated_at = updated_at

    def latest_price(self) -> RoundData:
        return self.answer, self.updated_at

    def update_answer(self, answer: int, updated_at: Optional[datetime] = None) -> None:
        """Publish a new answer, optionally with a new update time."""
        self.answer = answer
        if updated_at is not None:
            self.updated_at = updated_at

    def __repr__(self):
        return f"StaticPriceFeed(answer={self.answer}, decimals={self.decimals}, updated_at={self.updated_at})"


class TimeSeriesPriceFeed:
    """
    Price feed that replays a historical price path.

    latest_price() returns the most recent observation at or before the
    clock's current time, so the feed ages naturally as the clock moves.
    """

    def __init__(
        self,
        clock: Callable[[], datetime],
        price_path: Optional[List[Tuple[datetime, int]]] = None,
        decimals: int = DEFAULT_FEED_DECIMALS,
    ):
        """
        Initialize the feed.

        Args:
            clock: Returns the current time (typically the engine clock)
            price_path: Optional list of (timestamp, raw_price) observations
            decimals: Feed decimal places (default: 8)

        Example:
            feed = TimeSeriesPriceFeed(lambda: engine.current_time, [
                (t0, 2000_00000000), (t1, 1800_00000000),
            ])
        """
        self.decimals = decimals
        self._clock = clock
        self.history: List[Tuple[datetime, int]] = sorted(price_path or [], key=lambda x: x[0])

    def add_price(self, timestamp: datetime, price: int) -> None:
        """Add an observation, keeping history sorted by timestamp."""
        self.history.append((timestamp, price))
        self.history.sort(key=lambda x: x[0])

    def latest_price(self) -> RoundData:
        """
        Return the last observation at or before the clock time.

        Returns (0, None) if no observation precedes the clock, which
        the staleness check rejects.
        """
        timestamps = [ts for ts, _ in self.history]
        idx = bisect_right(timestamps, self._clock())
        if idx == 0:
            return 0, None
        ts, price = self.history[idx - 1]
        return price, ts

    def __repr__(self):
        return f"TimeSeriesPriceFeed({len(self.history)} observations, decimals={self.decimals})"
