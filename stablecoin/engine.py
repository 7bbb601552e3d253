"""
engine.py - Solvency-Enforcing Collateral Engine

The StablecoinEngine is the only component that mutates positions. It
accepts collateral, issues and burns debt, and lets third parties
liquidate undercollateralized accounts.

Key responsibilities:
    - Executes every public operation atomically: balances, collaborator
      transfers and the event log all commit together or roll back together
    - Re-derives the health factor after each mutation and aborts on violation
    - Rejects re-entrant calls through a scoped guard
    - Reads fresh, stale-checked oracle prices for every valuation
    - Exposes read-only queries that never take the guard
"""

from __future__ import annotations
from contextlib import contextmanager
from dataclasses import replace
from datetime import datetime
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
import threading

from .config import EngineConfig
from .core import (
    # Constants
    ADDITIONAL_FEED_PRECISION, LIQUIDATION_BONUS, LIQUIDATION_PRECISION,
    LIQUIDATION_THRESHOLD, MIN_HEALTH_FACTOR, PRECISION,
    # Protocols
    AssetLedger, PriceFeed, Revertible,
    # Exceptions
    HealthFactorBroken, HealthFactorNotImproved, HealthFactorOk,
    MintFailed, ReentrantCall, TransferFailed,
    # Events
    CollateralDeposited, CollateralRedeemed, DebtBurned, DebtMinted, Liquidated,
    # Helpers
    require_positive,
)
from .oracle import PriceQuote, stale_checked_price
from .positions import PositionLedger
from .solvency import (
    LiquidationQuote,
    calculate_collateral_value, calculate_health_factor,
    calculate_liquidation_payout, calculate_token_amount_from_usd,
    calculate_usd_value, classify_account,
)


class ReentrancyGuard:
    """
    Scoped lock around mutating entry points.

    A second acquire from the thread already holding the guard fails
    immediately with ReentrantCall (a transfer hook calling back into the
    engine). Other threads wait for the in-flight operation to finish.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._operation: Optional[str] = None

    @property
    def held(self) -> bool:
        return self._owner is not None

    @contextmanager
    def hold(self, operation: str) -> Iterator[None]:
        if self._owner == threading.get_ident():
            raise ReentrantCall(
                f"{operation} called while {self._operation} is in progress"
            )
        self._lock.acquire()
        self._owner = threading.get_ident()
        self._operation = operation
        try:
            yield
        finally:
            self._owner = None
            self._operation = None
            self._lock.release()


class StablecoinEngine:
    """
    Overcollateralized debt issuance with synchronous liquidation.

    Design Principles:
        - All-or-nothing: a failed operation leaves positions, the event log
          and every collaborator exactly as they were.
        - Two phases: an operation first records its balance changes on a
          private working copy of the positions and re-derives the affected
          health factors there. Only when every check passes does it settle
          with the collaborators (pull tokens in, then issue, push out or
          destroy).
        - No background work: liquidation is caller-initiated and evaluated
          against current state.

    Thread Safety:
        Mutating operations are serialized by a ReentrancyGuard. Queries take
        no lock and read the last committed positions, which are never
        mutated once published.

    Example:
        engine = StablecoinEngine(config, initial_time=datetime(2025, 1, 1))
        engine.deposit_collateral("alice", "WETH", to_units(Decimal("10")))
        engine.mint_debt("alice", to_units(Decimal("100")))
        engine.get_health_factor("alice")
    """

    def __init__(
        self,
        config: EngineConfig,
        name: str = "engine",
        initial_time: Optional[datetime] = None,
        verbose: bool = True,
    ):
        """
        Create an engine.

        Args:
            config: Immutable wiring (registry, debt token, authority, timeout)
            name: Engine identifier used in output
            initial_time: Starting time of the logical clock (default: 1970-01-01)
            verbose: Print one line per applied or rejected operation
        """
        self.name = name
        self.config = config
        self.registry = config.registry
        self.event_log: List[Any] = []
        self.verbose = verbose
        self._positions = PositionLedger()
        self._current_time: datetime = initial_time or datetime(1970, 1, 1)
        self._next_sequence: int = 0
        self._guard = ReentrancyGuard()

        # Staged state of the in-flight operation
        self._working: Optional[PositionLedger] = None
        self._pending_events: List[Any] = []
        self._compensations: List[Tuple[Callable[[], bool], str]] = []

    @property
    def positions(self) -> PositionLedger:
        """Last committed positions. Treat as read-only."""
        return self._positions

    # ========================================================================
    # TIME MANAGEMENT
    # ========================================================================

    @property
    def current_time(self) -> datetime:
        """Current logical time, used for price staleness checks."""
        return self._current_time

    def advance_time(self, new_time: datetime) -> None:
        """
        Advance the logical clock. Time can only move forward.

        Raises:
            ValueError: If new_time is before the current time
        """
        if new_time < self._current_time:
            raise ValueError(
                f"Cannot move time backwards: {new_time} < {self._current_time}"
            )
        self._current_time = new_time

    # ========================================================================
    # COLLATERAL (Mutating)
    # ========================================================================

    def deposit_collateral(self, account: str, asset: str, amount: int) -> None:
        """
        Move collateral from account into custody and record it.

        Depositing can only improve solvency, so no health check runs.

        Raises:
            InvalidInput: If amount <= 0 or asset is not accepted
            TransferFailed: If the asset ledger refuses the transfer
        """
        with self._operation("deposit_collateral", f"{account} +{amount} {asset}"):
            token = self._record_deposit(account, asset, amount)
            self._pull(token, account, amount)

    def redeem_collateral(self, account: str, asset: str, amount: int) -> None:
        """
        Withdraw collateral back to account.

        Raises:
            InvalidInput: If amount <= 0 or asset is not accepted
            InsufficientBalance: If amount exceeds the deposited balance
            TransferFailed: If custody cannot send the tokens
            HealthFactorBroken: If the withdrawal leaves account undercollateralized
        """
        with self._operation("redeem_collateral", f"{account} -{amount} {asset}"):
            require_positive(amount, "amount_collateral")
            self.registry.require_allowed(asset)
            token = self._record_redemption(asset, amount, account, account)
            self._revert_if_health_factor_is_broken(account)
            self._push(token, account, amount)

    # ========================================================================
    # DEBT (Mutating)
    # ========================================================================

    def mint_debt(self, account: str, amount: int) -> None:
        """
        Issue debt tokens to account against its collateral.

        Raises:
            InvalidInput: If amount <= 0
            HealthFactorBroken: If the new debt leaves account undercollateralized
            MintFailed: If the issuance authority declines
        """
        with self._operation("mint_debt", f"{account} +{amount} debt"):
            self._record_mint(account, amount)
            self._issue(account, amount)

    def burn_debt(self, account: str, amount: int) -> None:
        """
        Repay account's own debt with its own debt tokens.

        Raises:
            InvalidInput: If amount <= 0
            InsufficientBalance: If amount exceeds account's minted debt
            TransferFailed: If account has not approved or lacks the tokens
        """
        with self._operation("burn_debt", f"{account} -{amount} debt"):
            require_positive(amount, "amount")
            self._record_burn(amount, account, account)
            self._revert_if_health_factor_is_broken(account)
            self._pull(self.config.debt_token, account, amount)
            self._destroy(amount)

    def deposit_collateral_and_mint(
        self,
        account: str,
        asset: str,
        amount_collateral: int,
        amount_to_mint: int,
    ) -> None:
        """
        Deposit collateral and mint debt in one atomic step.

        The health check covers both legs and runs before any tokens move.
        """
        detail = f"{account} +{amount_collateral} {asset}, +{amount_to_mint} debt"
        with self._operation("deposit_collateral_and_mint", detail):
            token = self._record_deposit(account, asset, amount_collateral)
            self._record_mint(account, amount_to_mint)
            self._pull(token, account, amount_collateral)
            self._issue(account, amount_to_mint)

    def redeem_collateral_for_debt(
        self,
        account: str,
        asset: str,
        amount_collateral: int,
        amount_to_burn: int,
    ) -> None:
        """
        Burn debt and withdraw collateral in one atomic step.

        The health check runs once, after both legs.
        """
        detail = f"{account} -{amount_to_burn} debt, -{amount_collateral} {asset}"
        with self._operation("redeem_collateral_for_debt", detail):
            require_positive(amount_collateral, "amount_collateral")
            require_positive(amount_to_burn, "amount_to_burn")
            self.registry.require_allowed(asset)
            self._record_burn(amount_to_burn, account, account)
            token = self._record_redemption(asset, amount_collateral, account, account)
            self._revert_if_health_factor_is_broken(account)

            self._pull(self.config.debt_token, account, amount_to_burn)
            self._push(token, account, amount_collateral)
            self._destroy(amount_to_burn)

    # ========================================================================
    # LIQUIDATION (Mutating)
    # ========================================================================

    def liquidate(self, liquidator: str, asset: str, account: str, debt_to_cover: int) -> LiquidationQuote:
        """
        Repay part of an undercollateralized account's debt for a bonus.

        The liquidator pays debt_to_cover in debt tokens and receives the
        equivalent amount of asset plus LIQUIDATION_BONUS percent, taken
        from account's deposited collateral.

        The payout is not clamped: if account holds less collateral than
        the payout (system collateralization at or below 100%), the
        liquidation fails with InsufficientBalance.

        Args:
            liquidator: Who pays the debt and receives the collateral
            asset: Collateral asset to seize
            account: Undercollateralized account
            debt_to_cover: Debt to repay on account's behalf (18 decimals)

        Returns:
            LiquidationQuote describing the collateral paid out

        Raises:
            InvalidInput: If debt_to_cover <= 0 or asset is not accepted
            HealthFactorOk: If account is not below MIN_HEALTH_FACTOR
            HealthFactorNotImproved: If account is not left above MIN_HEALTH_FACTOR
            HealthFactorBroken: If the liquidator ends up undercollateralized
        """
        detail = f"{liquidator} covers {debt_to_cover} of {account} for {asset}"
        with self._operation("liquidate", detail):
            require_positive(debt_to_cover, "debt_to_cover")
            self.registry.require_allowed(asset)

            starting = self._health_factor(self._working, account)
            if starting >= MIN_HEALTH_FACTOR:
                raise HealthFactorOk(account, starting)

            quote = self.get_liquidation_quote(asset, debt_to_cover)
            seized = quote.total_collateral_to_redeem
            token = self._record_redemption(asset, seized, account, liquidator)
            self._record_burn(debt_to_cover, account, liquidator)

            ending = self._health_factor(self._working, account)
            if ending <= starting or ending <= MIN_HEALTH_FACTOR:
                raise HealthFactorNotImproved(account, starting, ending)
            self._revert_if_health_factor_is_broken(liquidator)

            self._emit(Liquidated(
                liquidator=liquidator,
                account=account,
                asset=asset,
                debt_covered=debt_to_cover,
                collateral_seized=seized,
            ))

            self._pull(self.config.debt_token, liquidator, debt_to_cover)
            self._push(token, liquidator, seized)
            self._destroy(debt_to_cover)
            return quote

    # ========================================================================
    # LEDGER PHASE (run inside an operation, touches only the working copy)
    # ========================================================================

    def _record_deposit(self, account: str, asset: str, amount: int) -> AssetLedger:
        require_positive(amount, "amount_collateral")
        token = self.registry.token(asset)
        self._working.credit_collateral(account, asset, amount)
        self._emit(CollateralDeposited(account=account, asset=asset, amount=amount))
        return token

    def _record_redemption(self, asset: str, amount: int, redeemed_from: str, redeemed_to: str) -> AssetLedger:
        token = self.registry.token(asset)
        self._working.debit_collateral(redeemed_from, asset, amount)
        self._emit(CollateralRedeemed(
            redeemed_from=redeemed_from, redeemed_to=redeemed_to, asset=asset, amount=amount,
        ))
        return token

    def _record_mint(self, account: str, amount: int) -> None:
        require_positive(amount, "amount_to_mint")
        self._working.credit_debt(account, amount)
        self._revert_if_health_factor_is_broken(account)
        self._emit(DebtMinted(account=account, amount=amount))

    def _record_burn(self, amount: int, on_behalf_of: str, debt_from: str) -> None:
        """
        Reduce on_behalf_of's debt, to be paid with debt_from's tokens.

        No solvency check: callers decide whether one is needed.
        """
        self._working.debit_debt(on_behalf_of, amount)
        self._emit(DebtBurned(on_behalf_of=on_behalf_of, debt_from=debt_from, amount=amount))

    def _revert_if_health_factor_is_broken(self, account: str) -> None:
        health_factor = self._health_factor(self._working, account)
        if health_factor < MIN_HEALTH_FACTOR:
            raise HealthFactorBroken(account, health_factor)

    def _emit(self, event: Any) -> None:
        sequence = self._next_sequence + len(self._pending_events)
        self._pending_events.append(
            replace(event, sequence_number=sequence, timestamp=self._current_time)
        )

    # ========================================================================
    # SETTLEMENT PHASE (external calls, after every check has passed)
    # ========================================================================

    def _pull(self, token: AssetLedger, source: str, amount: int) -> None:
        if not token.transfer_in(source, amount):
            raise TransferFailed(f"Transfer of {amount} {token.symbol} from {source} failed")
        self._compensate(
            token, lambda: token.transfer_out(source, amount),
            f"return {amount} {token.symbol} to {source}",
        )

    def _push(self, token: AssetLedger, dest: str, amount: int) -> None:
        if not token.transfer_out(dest, amount):
            raise TransferFailed(f"Transfer of {amount} {token.symbol} to {dest} failed")
        self._compensate(
            token, lambda: token.transfer_in(dest, amount),
            f"take back {amount} {token.symbol} from {dest}",
        )

    def _issue(self, account: str, amount: int) -> None:
        if not self.config.debt_authority.issue(account, amount):
            raise MintFailed(f"Issuance of {amount} debt to {account} declined")

    def _destroy(self, amount: int) -> None:
        self.config.debt_authority.destroy(amount)

    def _compensate(self, collaborator: Any, undo: Callable[[], bool], description: str) -> None:
        """Register an undo step for a collaborator that cannot snapshot itself."""
        if not isinstance(collaborator, Revertible):
            self._compensations.append((undo, description))

    # ========================================================================
    # ATOMICITY
    # ========================================================================

    def _revertible_collaborators(self) -> List[Revertible]:
        seen = set()
        found = []
        candidates = list(self.registry.tokens.values())
        candidates += [self.config.debt_token, self.config.debt_authority]
        for c in candidates:
            if id(c) in seen:
                continue
            seen.add(id(c))
            if isinstance(c, Revertible):
                found.append(c)
        return found

    def _begin(self) -> List[Tuple[Revertible, Any]]:
        self._working = self._positions.clone()
        self._pending_events = []
        self._compensations = []
        return [(c, c.snapshot()) for c in self._revertible_collaborators()]

    def _commit(self) -> None:
        self._positions = self._working
        self.event_log.extend(self._pending_events)
        self._next_sequence += len(self._pending_events)
        self._clear_staged()

    def _restore(self, saved: List[Tuple[Revertible, Any]]) -> None:
        """
        Undo collaborator side effects and drop the staged state.

        Revertible collaborators go back to their snapshot; the others
        replay their recorded undo steps, newest first.

        Raises:
            TransferFailed: If an undo step is refused
        """
        for collaborator, snap in saved:
            collaborator.revert(snap)
        failed = []
        for undo, description in reversed(self._compensations):
            if not undo():
                failed.append(description)
        self._clear_staged()
        if failed:
            raise TransferFailed(f"Rollback incomplete, could not {'; '.join(failed)}")

    def _clear_staged(self) -> None:
        self._working = None
        self._pending_events = []
        self._compensations = []

    @contextmanager
    def _operation(self, name: str, detail: str) -> Iterator[None]:
        """
        Run one public operation under the guard, all-or-nothing.

        Any exception restores the pre-operation state and propagates.
        Positions and events become visible to queries only on commit.
        """
        with self._guard.hold(name):
            saved = self._begin()
            try:
                yield
            except Exception as e:
                self._restore(saved)
                if self.verbose:
                    print(f"✗ REJECTED {name}: {detail} ({type(e).__name__}: {e})")
                raise
            self._commit()
            if self.verbose:
                print(f"✓ APPLIED  {name}: {detail}")

    # ========================================================================
    # PRICE QUERIES (read-only)
    # ========================================================================

    def _quote(self, asset: str) -> PriceQuote:
        feed = self.registry.feed(asset)
        return stale_checked_price(feed, self._current_time, self.config.stale_price_timeout)

    def get_usd_value(self, asset: str, amount: int) -> int:
        """USD value (18 decimals) of amount of asset at the current price."""
        token = self.registry.token(asset)
        return calculate_usd_value(self._quote(asset).normalized, amount, token.decimals)

    def get_token_amount_from_usd(self, asset: str, usd_amount: int) -> int:
        """Quantity of asset worth usd_amount (18 decimals) at the current price."""
        token = self.registry.token(asset)
        return calculate_token_amount_from_usd(self._quote(asset).normalized, usd_amount, token.decimals)

    def get_liquidation_quote(self, asset: str, debt_to_cover: int) -> LiquidationQuote:
        """Collateral a liquidator would receive for covering debt_to_cover."""
        token = self.registry.token(asset)
        return calculate_liquidation_payout(self._quote(asset).normalized, debt_to_cover, token.decimals)

    # ========================================================================
    # ACCOUNT QUERIES (read-only)
    # ========================================================================

    def _collateral_value(self, positions: PositionLedger, account: str) -> int:
        prices = {asset: self._quote(asset).normalized for asset in self.registry.assets}
        decimals = {asset: self.registry.tokens[asset].decimals for asset in self.registry.assets}
        return calculate_collateral_value(
            self.registry.assets, positions.get_collateral_map(account), prices, decimals,
        )

    def _health_factor(self, positions: PositionLedger, account: str) -> int:
        debt = positions.get_debt(account)
        if debt == 0:
            return calculate_health_factor(0, 0)
        return calculate_health_factor(debt, self._collateral_value(positions, account))

    def get_collateral_balance_of_user(self, account: str, asset: str) -> int:
        return self._positions.get_collateral(account, asset)

    def get_debt_minted(self, account: str) -> int:
        return self._positions.get_debt(account)

    def get_account_collateral_value(self, account: str) -> int:
        """
        Total USD value of account's collateral.

        Every accepted asset's feed is read, in registry order, so a stale
        feed fails the valuation even for assets the account does not hold.
        """
        return self._collateral_value(self._positions, account)

    def get_account_information(self, account: str) -> Tuple[int, int]:
        """Return (debt_minted, collateral_value_usd) for account."""
        positions = self._positions
        return positions.get_debt(account), self._collateral_value(positions, account)

    def get_health_factor(self, account: str) -> int:
        """
        Current health factor of account, scaled to PRECISION.

        Accounts without debt return MAX_HEALTH_FACTOR without reading prices.
        """
        return self._health_factor(self._positions, account)

    def calculate_health_factor(self, total_debt_minted: int, collateral_value_usd: int) -> int:
        """Health factor for a hypothetical (debt, collateral value) pair."""
        return calculate_health_factor(total_debt_minted, collateral_value_usd)

    def get_account_status(self, account: str) -> str:
        """NO_DEBT, SOLVENT or UNDERCOLLATERALIZED, derived from current state."""
        positions = self._positions
        return classify_account(positions.get_debt(account), self._health_factor(positions, account))

    def list_accounts(self) -> List[str]:
        return sorted(self._positions.accounts())

    # ========================================================================
    # CONFIGURATION QUERIES (read-only)
    # ========================================================================

    def get_collateral_tokens(self) -> List[str]:
        return list(self.registry.assets)

    def get_collateral_token(self, asset: str) -> AssetLedger:
        return self.registry.token(asset)

    def get_collateral_token_price_feed(self, asset: str) -> PriceFeed:
        return self.registry.feed(asset)

    def get_debt_token(self) -> AssetLedger:
        return self.config.debt_token

    def get_precision(self) -> int:
        return PRECISION

    def get_additional_feed_precision(self) -> int:
        return ADDITIONAL_FEED_PRECISION

    def get_liquidation_threshold(self) -> int:
        return LIQUIDATION_THRESHOLD

    def get_liquidation_bonus(self) -> int:
        return LIQUIDATION_BONUS

    def get_liquidation_precision(self) -> int:
        return LIQUIDATION_PRECISION

    def get_min_health_factor(self) -> int:
        return MIN_HEALTH_FACTOR

    # ========================================================================
    # INVARIANT CHECKS (read-only)
    # ========================================================================

    def verify_solvency(self) -> Dict[str, Any]:
        """
        Check that every account with debt is at or above MIN_HEALTH_FACTOR.

        Accounts are visited in sorted order. Price drops can legitimately
        produce violations; they are what liquidation exists for.

        Returns:
            Dict with keys:
            - 'valid': bool
            - 'violations': List of {'account', 'health_factor'}
        """
        positions = self._positions
        violations = []
        for account in sorted(positions.accounts()):
            if positions.get_debt(account) == 0:
                continue
            health_factor = self._health_factor(positions, account)
            if health_factor < MIN_HEALTH_FACTOR:
                violations.append({'account': account, 'health_factor': health_factor})
        return {'valid': len(violations) == 0, 'violations': violations}

    def verify_custody(self) -> Dict[str, Any]:
        """
        Check that custody holds at least the recorded collateral of each asset.

        Returns:
            Dict with keys:
            - 'valid': bool
            - 'recorded': Dict[asset, total recorded collateral]
            - 'discrepancies': List of {'asset', 'recorded', 'custody'}
        """
        positions = self._positions
        recorded = {}
        discrepancies = []
        for asset in self.registry.assets:
            token = self.registry.tokens[asset]
            total = positions.total_collateral(asset)
            recorded[asset] = total
            held = token.balance_of(token.custody_wallet)
            if held < total:
                discrepancies.append({'asset': asset, 'recorded': total, 'custody': held})
        return {
            'valid': len(discrepancies) == 0,
            'recorded': recorded,
            'discrepancies': discrepancies,
        }

    def __repr__(self):
        return (
            f"StablecoinEngine({self.name}, assets={list(self.registry.assets)}, "
            f"accounts={len(self._positions.accounts())}, events={len(self.event_log)})"
        )
