"""
test_price_feeds.py - Unit tests for price feeds and staleness checks
"""

import pytest
from datetime import datetime, timedelta

from stablecoin import (
    PriceQuote, StaticPriceFeed, TimeSeriesPriceFeed,
    stale_checked_price, DEFAULT_STALE_PRICE_TIMEOUT,
    StalePrice, InvalidPrice, PriceFeed,
)

from tests.fake_collaborators import T0


class TestPriceQuote:

    def test_normalizes_8_decimal_feed(self):
        quote = PriceQuote(price=2000_00000000, decimals=8, updated_at=T0)
        assert quote.normalized == 2000 * 10 ** 18

    def test_normalizes_18_decimal_feed(self):
        quote = PriceQuote(price=5 * 10 ** 17, decimals=18, updated_at=T0)
        assert quote.normalized == 5 * 10 ** 17


class TestStaleCheckedPrice:

    def test_fresh_price(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        quote = stale_checked_price(feed, T0 + timedelta(hours=1), DEFAULT_STALE_PRICE_TIMEOUT)
        assert quote.price == 2000_00000000
        assert quote.decimals == 8
        assert quote.updated_at == T0

    def test_exactly_at_timeout_is_fresh(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        stale_checked_price(feed, T0 + timedelta(hours=3), DEFAULT_STALE_PRICE_TIMEOUT)

    def test_past_timeout_is_stale(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        with pytest.raises(StalePrice):
            stale_checked_price(
                feed, T0 + timedelta(hours=3, seconds=1), DEFAULT_STALE_PRICE_TIMEOUT
            )

    def test_custom_timeout(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        with pytest.raises(StalePrice):
            stale_checked_price(feed, T0 + timedelta(minutes=2), timedelta(minutes=1))

    @pytest.mark.parametrize("answer", [0, -1, -2000_00000000])
    def test_non_positive_price_rejected(self, answer):
        feed = StaticPriceFeed(answer, updated_at=T0)
        with pytest.raises(InvalidPrice):
            stale_checked_price(feed, T0, DEFAULT_STALE_PRICE_TIMEOUT)

    def test_never_updated_feed_is_stale(self):
        feed = TimeSeriesPriceFeed(lambda: T0)
        with pytest.raises(StalePrice):
            stale_checked_price(feed, T0, DEFAULT_STALE_PRICE_TIMEOUT)


class TestStaticPriceFeed:

    def test_satisfies_protocol(self):
        assert isinstance(StaticPriceFeed(1, updated_at=T0), PriceFeed)

    def test_update_answer_keeps_timestamp_by_default(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        feed.update_answer(18_00000000)
        assert feed.latest_price() == (18_00000000, T0)

    def test_repr_shows_published_state(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        feed.update_answer(18_00000000)
        assert repr(feed) == f"StaticPriceFeed(answer=1800000000, decimals=8, updated_at={T0})"

    def test_update_answer_with_timestamp(self):
        feed = StaticPriceFeed(2000_00000000, updated_at=T0)
        t1 = T0 + timedelta(hours=5)
        feed.update_answer(1900_00000000, updated_at=t1)
        assert feed.latest_price() == (1900_00000000, t1)


class TestTimeSeriesPriceFeed:

    def test_follows_clock(self):
        now = [T0]
        t1 = T0 + timedelta(hours=1)
        feed = TimeSeriesPriceFeed(lambda: now[0], [
            (t1, 1800_00000000),
            (T0, 2000_00000000),
        ])

        assert feed.latest_price() == (2000_00000000, T0)
        now[0] = t1 + timedelta(minutes=30)
        assert feed.latest_price() == (1800_00000000, t1)

    def test_before_first_observation(self):
        feed = TimeSeriesPriceFeed(lambda: T0, [(T0 + timedelta(days=1), 1)])
        assert feed.latest_price() == (0, None)

    def test_add_price_keeps_order(self):
        now = [datetime(2025, 6, 1)]
        feed = TimeSeriesPriceFeed(lambda: now[0])
        feed.add_price(datetime(2025, 3, 1), 300)
        feed.add_price(datetime(2025, 1, 1), 100)
        feed.add_price(datetime(2025, 2, 1), 200)
        assert [p for _, p in feed.history] == [100, 200, 300]
        assert feed.latest_price() == (300, datetime(2025, 3, 1))

    def test_ages_with_clock(self):
        now = [T0]
        feed = TimeSeriesPriceFeed(lambda: now[0], [(T0, 2000_00000000)])
        now[0] = T0 + timedelta(hours=4)
        with pytest.raises(StalePrice):
            stale_checked_price(feed, now[0], DEFAULT_STALE_PRICE_TIMEOUT)
