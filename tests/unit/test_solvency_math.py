"""
test_solvency_math.py - Unit tests for the pure solvency functions

Tests:
- USD valuation and its inverse, for 18- and 8-decimal tokens
- Collateral pool valuation
- Health factor formula and the zero-debt case
- Liquidation payout with bonus
- Account classification
"""

import pytest

from stablecoin import (
    PRECISION, MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR,
    ACCOUNT_STATUS_NO_DEBT, ACCOUNT_STATUS_SOLVENT, ACCOUNT_STATUS_UNDERCOLLATERALIZED,
    calculate_usd_value, calculate_token_amount_from_usd,
    calculate_collateral_value, calculate_health_factor,
    calculate_liquidation_payout, classify_account,
    InvalidPrice,
)

ETH = 2000 * PRECISION
BTC = 1000 * PRECISION


class TestUsdConversion:

    def test_usd_value(self):
        # 15 ETH at $2000
        assert calculate_usd_value(ETH, 15 * 10 ** 18, 18) == 30_000 * PRECISION

    def test_token_amount_from_usd(self):
        # $100 at $2000 per ETH
        assert calculate_token_amount_from_usd(ETH, 100 * PRECISION, 18) == 5 * 10 ** 16

    def test_8_decimal_token(self):
        assert calculate_usd_value(BTC, 10 ** 8, 8) == 1000 * PRECISION
        assert calculate_token_amount_from_usd(BTC, 100 * PRECISION, 8) == 10 ** 7

    def test_rounds_down(self):
        # $100 at $18 is 5.555... ETH
        assert calculate_token_amount_from_usd(18 * PRECISION, 100 * PRECISION, 18) == 5555555555555555555

    def test_zero_price_rejected(self):
        with pytest.raises(InvalidPrice):
            calculate_token_amount_from_usd(0, PRECISION, 18)


class TestCollateralValue:

    def test_sums_assets(self):
        value = calculate_collateral_value(
            ["WETH", "WBTC"],
            {"WETH": 10 ** 18, "WBTC": 2 * 10 ** 8},
            {"WETH": ETH, "WBTC": BTC},
            {"WETH": 18, "WBTC": 8},
        )
        assert value == 4000 * PRECISION

    def test_missing_holdings_count_zero(self):
        value = calculate_collateral_value(
            ["WETH", "WBTC"], {"WETH": 10 ** 18},
            {"WETH": ETH, "WBTC": BTC}, {"WETH": 18, "WBTC": 8},
        )
        assert value == 2000 * PRECISION

    def test_missing_price(self):
        with pytest.raises(ValueError, match="price"):
            calculate_collateral_value(["WETH"], {}, {}, {"WETH": 18})


class TestHealthFactor:

    def test_no_debt_is_max(self):
        assert calculate_health_factor(0, 0) == MAX_HEALTH_FACTOR
        assert calculate_health_factor(0, 10 ** 30) == MAX_HEALTH_FACTOR

    def test_formula(self):
        # $20,000 collateral, 100 debt -> 100.0
        assert calculate_health_factor(100 * PRECISION, 20_000 * PRECISION) == 100 * PRECISION

    def test_exactly_200_percent_is_min(self):
        assert calculate_health_factor(100 * PRECISION, 200 * PRECISION) == MIN_HEALTH_FACTOR

    def test_below_min(self):
        # $180 collateral, 100 debt -> 0.9
        assert calculate_health_factor(100 * PRECISION, 180 * PRECISION) == 9 * PRECISION // 10

    def test_no_collateral(self):
        assert calculate_health_factor(1, 0) == 0


class TestLiquidationPayout:

    def test_bonus(self):
        quote = calculate_liquidation_payout(ETH, 100 * PRECISION, 18)
        assert quote.token_amount_from_debt == 5 * 10 ** 16
        assert quote.bonus_collateral == 5 * 10 ** 15
        assert quote.total_collateral_to_redeem == 55 * 10 ** 15
        assert quote.debt_to_cover == 100 * PRECISION

    def test_not_clamped(self):
        # No holdings are consulted; the payout is pure price math
        quote = calculate_liquidation_payout(PRECISION, 10 ** 6 * PRECISION, 18)
        assert quote.total_collateral_to_redeem == 11 * 10 ** 5 * PRECISION


class TestClassifyAccount:

    def test_statuses(self):
        assert classify_account(0, MAX_HEALTH_FACTOR) == ACCOUNT_STATUS_NO_DEBT
        assert classify_account(1, MIN_HEALTH_FACTOR) == ACCOUNT_STATUS_SOLVENT
        assert classify_account(1, MIN_HEALTH_FACTOR - 1) == ACCOUNT_STATUS_UNDERCOLLATERALIZED
