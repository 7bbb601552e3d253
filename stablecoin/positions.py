"""
positions.py - Position Ledger

Authoritative record of every account's collateral balances and minted
debt. Balances default to zero, so accounts never need registering;
they appear on first deposit or mint and persist as zero entries.

The ledger only enforces non-negativity. Solvency is the engine's job.
"""

from __future__ import annotations
from collections import defaultdict
from typing import Dict, Set, Tuple

from .core import CollateralMap, InsufficientBalance


class PositionLedger:
    """
    Per-account collateral and debt balances.

    Thread Safety:
        Not thread-safe on its own. The engine writes only to a private
        clone and publishes it whole, so readers never see a partial write.
    """

    def __init__(self):
        self.collateral: Dict[str, Dict[str, int]] = defaultdict(lambda: defaultdict(int))
        self.debt_minted: Dict[str, int] = defaultdict(int)

    # ========================================================================
    # READS
    # ========================================================================

    def get_collateral(self, account: str, asset: str) -> int:
        bals = self.collateral.get(account)
        if bals is None:
            return 0
        return bals.get(asset, 0)

    def get_collateral_map(self, account: str) -> CollateralMap:
        return dict(self.collateral.get(account, {}))

    def get_debt(self, account: str) -> int:
        return self.debt_minted.get(account, 0)

    def accounts(self) -> Set[str]:
        """Every account that has ever held collateral or debt."""
        return set(self.collateral) | set(self.debt_minted)

    def total_collateral(self, asset: str) -> int:
        return sum(self.collateral[a].get(asset, 0) for a in sorted(self.collateral))

    def total_debt(self) -> int:
        return sum(self.debt_minted[a] for a in sorted(self.debt_minted))

    # ========================================================================
    # MUTATIONS
    # ========================================================================

    def credit_collateral(self, account: str, asset: str, amount: int) -> int:
        """Increase collateral. Returns the new balance."""
        self.collateral[account][asset] += amount
        return self.collateral[account][asset]

    def debit_collateral(self, account: str, asset: str, amount: int) -> int:
        """
        Decrease collateral. Returns the new balance.

        Raises:
            InsufficientBalance: If amount exceeds the recorded balance
        """
        current = self.get_collateral(account, asset)
        if amount > current:
            raise InsufficientBalance(
                f"{account} has {current} {asset} deposited, cannot redeem {amount}"
            )
        self.collateral[account][asset] = current - amount
        return current - amount

    def credit_debt(self, account: str, amount: int) -> int:
        self.debt_minted[account] += amount
        return self.debt_minted[account]

    def debit_debt(self, account: str, amount: int) -> int:
        """
        Decrease minted debt. Returns the new balance.

        Raises:
            InsufficientBalance: If amount exceeds the recorded debt
        """
        current = self.get_debt(account)
        if amount > current:
            raise InsufficientBalance(
                f"{account} has {current} debt minted, cannot burn {amount}"
            )
        self.debt_minted[account] = current - amount
        return current - amount

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> Tuple[Dict[str, Dict[str, int]], Dict[str, int]]:
        return (
            {account: dict(bals) for account, bals in self.collateral.items()},
            dict(self.debt_minted),
        )

    def revert(self, snapshot: Tuple[Dict[str, Dict[str, int]], Dict[str, int]]) -> None:
        collateral, debt = snapshot
        self.collateral = defaultdict(lambda: defaultdict(int))
        for account, bals in collateral.items():
            self.collateral[account] = defaultdict(int, bals)
        self.debt_minted = defaultdict(int, debt)

    def clone(self) -> PositionLedger:
        """Independent copy; writes to either side never reach the other."""
        copy = PositionLedger()
        copy.revert(self.snapshot())
        return copy

    def __repr__(self):
        return f"PositionLedger({len(self.accounts())} accounts, debt={self.total_debt()})"
