"""
solvency.py - Fixed-point solvency and liquidation math

PURE FUNCTIONS - every input is an explicit parameter. No engine, no
oracle reads, no hidden state. The engine loads prices and balances once
and passes them in, which keeps these trivially testable and lets callers
stress-test with hypothetical prices.

Key Formulas (all integer, division last):
    usd_value        = normalized_price * amount // 10**token_decimals
    token_amount     = usd_amount * 10**token_decimals // normalized_price
    adjusted         = collateral_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    health_factor    = adjusted * PRECISION // debt          (MAX if debt == 0)
    bonus            = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
"""

from __future__ import annotations
from dataclasses import dataclass
from typing import Iterable, Mapping

from .core import (
    LIQUIDATION_BONUS, LIQUIDATION_PRECISION, LIQUIDATION_THRESHOLD,
    MAX_HEALTH_FACTOR, MIN_HEALTH_FACTOR, PRECISION,
    ACCOUNT_STATUS_NO_DEBT, ACCOUNT_STATUS_SOLVENT, ACCOUNT_STATUS_UNDERCOLLATERALIZED,
    InvalidPrice,
)


@dataclass(frozen=True, slots=True)
class LiquidationQuote:
    """
    Collateral a liquidator receives for covering debt.

    Attributes:
        debt_to_cover: Debt repaid (18 decimals)
        token_amount_from_debt: Collateral equal in value to debt_to_cover
        bonus_collateral: Incentive on top of the principal amount
    """
    debt_to_cover: int
    token_amount_from_debt: int
    bonus_collateral: int

    @property
    def total_collateral_to_redeem(self) -> int:
        return self.token_amount_from_debt + self.bonus_collateral


def calculate_usd_value(normalized_price: int, amount: int, token_decimals: int) -> int:
    """
    USD value (18 decimals) of amount smallest units of a token.

    Args:
        normalized_price: Price per whole token scaled to PRECISION
        amount: Token quantity in smallest units
        token_decimals: Decimal places of the token

    Example:
        # 15 ETH at $2000 -> $30,000
        calculate_usd_value(2000 * 10**18, 15 * 10**18, 18) == 30_000 * 10**18
    """
    return normalized_price * amount // 10 ** token_decimals


def calculate_token_amount_from_usd(normalized_price: int, usd_amount: int, token_decimals: int) -> int:
    """
    Inverse of calculate_usd_value: token quantity worth usd_amount.

    Raises:
        InvalidPrice: If normalized_price is not positive
    """
    if normalized_price <= 0:
        raise InvalidPrice(f"Cannot convert at non-positive price {normalized_price}")
    return usd_amount * 10 ** token_decimals // normalized_price


def calculate_collateral_value(
    assets: Iterable[str],
    collateral: Mapping[str, int],
    prices: Mapping[str, int],
    decimals: Mapping[str, int],
) -> int:
    """
    Total USD value of a collateral pool.

    Sums over assets in the given order; assets absent from collateral
    count as zero.

    Raises:
        ValueError: If an asset is missing a price or decimals entry
    """
    total = 0
    for asset in assets:
        if asset not in prices:
            raise ValueError(f"Missing price for collateral asset '{asset}'")
        if asset not in decimals:
            raise ValueError(f"Missing decimals for collateral asset '{asset}'")
        total += calculate_usd_value(prices[asset], collateral.get(asset, 0), decimals[asset])
    return total


def calculate_health_factor(total_debt_minted: int, collateral_value_usd: int) -> int:
    """
    Health factor of a position, scaled to PRECISION.

    Returns MAX_HEALTH_FACTOR when there is no debt: such an account can
    never be liquidated regardless of its collateral.
    """
    if total_debt_minted == 0:
        return MAX_HEALTH_FACTOR
    adjusted = collateral_value_usd * LIQUIDATION_THRESHOLD // LIQUIDATION_PRECISION
    return adjusted * PRECISION // total_debt_minted


def calculate_liquidation_payout(
    normalized_price: int,
    debt_to_cover: int,
    token_decimals: int,
) -> LiquidationQuote:
    """
    Collateral owed to a liquidator for covering debt_to_cover.

    The result is not clamped to what the target actually holds.
    """
    token_amount = calculate_token_amount_from_usd(normalized_price, debt_to_cover, token_decimals)
    bonus = token_amount * LIQUIDATION_BONUS // LIQUIDATION_PRECISION
    return LiquidationQuote(
        debt_to_cover=debt_to_cover,
        token_amount_from_debt=token_amount,
        bonus_collateral=bonus,
    )


def classify_account(total_debt_minted: int, health_factor: int) -> str:
    """Derived account status: NO_DEBT, SOLVENT or UNDERCOLLATERALIZED."""
    if total_debt_minted == 0:
        return ACCOUNT_STATUS_NO_DEBT
    if health_factor >= MIN_HEALTH_FACTOR:
        return ACCOUNT_STATUS_SOLVENT
    return ACCOUNT_STATUS_UNDERCOLLATERALIZED
