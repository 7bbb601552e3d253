"""
tokens.py - In-memory token ledgers

Reference implementations of the external collaborators the engine talks
to: a collateral asset ledger and the debt token with its issuance
capability. They follow ERC-20 semantics closely enough to exercise every
failure path (insufficient balance, missing allowance) and support
snapshot()/revert() so the engine can undo transfers of an aborted
operation.

Classes:
- TokenLedger: Balances, allowances and custody transfers for one token
- StableToken: Debt token; hands out a single IssuanceAuthority
"""

from __future__ import annotations
from collections import defaultdict
from typing import Any, Dict, Tuple

from .core import (
    CUSTODY_WALLET, DEBT_TOKEN_DECIMALS,
    InsufficientBalance, InvalidConfiguration,
)


class TokenLedger:
    """
    Balance-transfer ledger for a single token.

    Accounts approve the custody wallet before the engine can pull tokens
    with transfer_in(). Failed transfers return False and leave balances
    untouched.

    Example:
        weth = TokenLedger("WETH", "Wrapped Ether")
        weth.mint_to("alice", to_units(Decimal("10")))
        weth.approve("alice", to_units(Decimal("10")))
        weth.transfer_in("alice", to_units(Decimal("10")))  # True
    """

    def __init__(
        self,
        symbol: str,
        name: str = "",
        decimals: int = 18,
        custody_wallet: str = CUSTODY_WALLET,
    ):
        if not symbol or not symbol.strip():
            raise ValueError("Token symbol cannot be empty")
        if decimals < 0:
            raise ValueError(f"Token decimals must be non-negative, got {decimals}")
        self.symbol = symbol
        self.name = name or symbol
        self.decimals = decimals
        self.custody_wallet = custody_wallet
        self.balances: Dict[str, int] = defaultdict(int)
        # owner -> amount the custody wallet may pull
        self.allowances: Dict[str, int] = defaultdict(int)

    # ========================================================================
    # READS
    # ========================================================================

    def balance_of(self, account: str) -> int:
        return self.balances.get(account, 0)

    def allowance(self, owner: str) -> int:
        return self.allowances.get(owner, 0)

    def total_supply(self) -> int:
        return sum(self.balances[a] for a in sorted(self.balances))

    # ========================================================================
    # TRANSFERS
    # ========================================================================

    def mint_to(self, account: str, amount: int) -> None:
        """Credit freshly created tokens (faucet for setup and tests)."""
        if amount < 0:
            raise ValueError(f"Cannot mint negative amount {amount}")
        self.balances[account] += amount

    def approve(self, owner: str, amount: int) -> None:
        """Allow the custody wallet to pull up to amount from owner."""
        if amount < 0:
            raise ValueError(f"Allowance cannot be negative, got {amount}")
        self.allowances[owner] = amount

    def transfer(self, source: str, dest: str, amount: int) -> bool:
        """Peer-to-peer transfer. Returns False if source lacks funds."""
        if amount < 0 or self.balances.get(source, 0) < amount:
            return False
        self.balances[source] -= amount
        self.balances[dest] += amount
        return True

    def transfer_in(self, source: str, amount: int) -> bool:
        """Pull amount from source into custody, spending its allowance."""
        if amount < 0 or self.allowances.get(source, 0) < amount:
            return False
        if not self.transfer(source, self.custody_wallet, amount):
            return False
        self.allowances[source] -= amount
        return True

    def transfer_out(self, dest: str, amount: int) -> bool:
        """Send amount from custody to dest."""
        return self.transfer(self.custody_wallet, dest, amount)

    # ========================================================================
    # SNAPSHOTS
    # ========================================================================

    def snapshot(self) -> Tuple[Dict[str, int], Dict[str, int]]:
        return dict(self.balances), dict(self.allowances)

    def revert(self, snapshot: Any) -> None:
        balances, allowances = snapshot
        self.balances = defaultdict(int, balances)
        self.allowances = defaultdict(int, allowances)

    def __repr__(self):
        return f"TokenLedger({self.symbol}, decimals={self.decimals}, supply={self.total_supply()})"


class StableToken(TokenLedger):
    """
    Debt token ledger.

    Creating and destroying supply is only possible through the
    IssuanceAuthority returned by issuance_authority(), which can be
    taken exactly once (by whoever wires up the engine).
    """

    def __init__(
        self,
        symbol: str = "DSC",
        name: str = "Decentralized Stable Coin",
        custody_wallet: str = CUSTODY_WALLET,
    ):
        super().__init__(symbol, name, DEBT_TOKEN_DECIMALS, custody_wallet)
        self._authority_taken = False

    def issuance_authority(self) -> "StableTokenAuthority":
        """Hand out the issuance capability. Raises if already taken."""
        if self._authority_taken:
            raise InvalidConfiguration(f"Issuance authority for {self.symbol} already taken")
        self._authority_taken = True
        return StableTokenAuthority(self)

    def _issue(self, account: str, amount: int) -> bool:
        if amount <= 0:
            return False
        self.balances[account] += amount
        return True

    def _destroy(self, amount: int) -> None:
        held = self.balances.get(self.custody_wallet, 0)
        if amount <= 0 or held < amount:
            raise InsufficientBalance(
                f"Cannot destroy {amount} {self.symbol}: custody holds {held}"
            )
        self.balances[self.custody_wallet] -= amount


class StableTokenAuthority:
    """IssuanceAuthority bound to one StableToken."""

    def __init__(self, token: StableToken):
        self.token = token

    def issue(self, account: str, amount: int) -> bool:
        return self.token._issue(account, amount)

    def destroy(self, amount: int) -> None:
        self.token._destroy(amount)

    def __repr__(self):
        return f"StableTokenAuthority({self.token.symbol})"
