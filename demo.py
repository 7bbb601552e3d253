#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Engine Step by Step

A walkthrough of the synthetic-dollar engine, from wiring it up to
liquidating an account after a price crash. Each step builds on the
previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3: Foundation   - Collateral tokens, price feeds, the engine
  4-5: Borrowing    - Depositing, minting, the 200% limit
  6:   Atomicity    - Rejected operations leave no trace
  7-8: Liquidation  - Price crash, liquidation with a bonus, final checks

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from decimal import Decimal
import sys

from stablecoin import (
    StablecoinEngine, EngineConfig, AssetRegistry,
    TokenLedger, StableToken, StaticPriceFeed,
    HealthFactorBroken, HealthFactorOk,
    to_units, from_units, MAX_HEALTH_FACTOR,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: datetime = datetime(2025, 1, 1, 9, 0, 0)

    # Prices in whole dollars per token
    eth_price: int = 2000
    crashed_eth_price: int = 18

    alice_collateral: Decimal = Decimal("10")
    alice_debt: Decimal = Decimal("100")
    liquidator_collateral: Decimal = Decimal("20")


CONFIG = DemoConfig()

QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def fmt_hf(health_factor: int) -> str:
    if health_factor == MAX_HEALTH_FACTOR:
        return "MAX (no debt)"
    return f"{from_units(health_factor):.4f}"


def fmt_usd(amount: int) -> str:
    return f"${from_units(amount):,.2f}"


def fund(token: TokenLedger, account: str, amount: int):
    token.mint_to(account, amount)
    token.approve(account, amount)


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_tokens():
    """Create the collateral token and the debt token."""
    step_header(1, "Tokens",
        "Collateral and debt are both plain balance ledgers.")

    print("""
    Amounts are integers in each token's smallest unit (18 decimals here).
    Before the engine can pull tokens, the owner approves it, exactly like
    an ERC-20 allowance.
    """)

    wait_for_enter()

    print('>>> weth = TokenLedger("WETH", "Wrapped Ether")')
    weth = TokenLedger("WETH", "Wrapped Ether")
    print(">>> dsc = StableToken()")
    dsc = StableToken()

    section_header("Token Properties")
    print(f"Collateral: {weth}")
    print(f"Debt token: {dsc}")
    print(f"1 WETH =    {to_units(Decimal('1'))} smallest units")

    return weth, dsc


def step_02_price_feed():
    """Create a USD price feed for WETH."""
    step_header(2, "Price Feeds",
        "Every collateral asset is valued through an 8-decimal USD feed.")

    answer = CONFIG.eth_price * 10 ** 8
    print(f">>> eth_usd = StaticPriceFeed({answer}, updated_at={CONFIG.start_time!r})")
    eth_usd = StaticPriceFeed(answer, updated_at=CONFIG.start_time)

    section_header("Key Insight")
    print("""
    The engine re-reads the feed on every valuation and refuses prices older
    than 3 hours. A stale oracle freezes minting, redeeming against debt and
    liquidation until it updates.
    """)

    return eth_usd


def step_03_engine(weth: TokenLedger, dsc: StableToken, eth_usd: StaticPriceFeed):
    """Wire up the engine."""
    step_header(3, "The Engine",
        "The engine holds the only issuance capability for the debt token.")

    print("""
    >>> config = EngineConfig(
    ...     registry=AssetRegistry.from_lists([weth], [eth_usd]),
    ...     debt_token=dsc,
    ...     debt_authority=dsc.issuance_authority(),
    ... )
    >>> engine = StablecoinEngine(config, initial_time=...)
    """)
    config = EngineConfig(
        registry=AssetRegistry.from_lists([weth], [eth_usd]),
        debt_token=dsc,
        debt_authority=dsc.issuance_authority(),
    )
    engine = StablecoinEngine(config, name="tutorial", initial_time=CONFIG.start_time)

    section_header("Parameters")
    print(f"Collateral assets:     {engine.get_collateral_tokens()}")
    print(f"Liquidation threshold: {engine.get_liquidation_threshold()}%")
    print(f"Liquidation bonus:     {engine.get_liquidation_bonus()}%")
    print(f"Min health factor:     {fmt_hf(engine.get_min_health_factor())}")

    return engine


# ============================================================================
# PHASE 2: BORROWING (Steps 4-5)
# ============================================================================

def step_04_deposit_and_mint(engine: StablecoinEngine, weth: TokenLedger):
    """Alice opens a position."""
    step_header(4, "Deposit and Mint",
        "Debt can be minted up to half the collateral's USD value.")

    collateral = to_units(CONFIG.alice_collateral)
    debt = to_units(CONFIG.alice_debt)
    fund(weth, "alice", collateral)

    print(f'>>> engine.deposit_collateral_and_mint("alice", "WETH", {collateral}, {debt})')
    engine.deposit_collateral_and_mint("alice", "WETH", collateral, debt)

    minted, value = engine.get_account_information("alice")
    section_header("Alice's Position")
    print(f"Collateral value: {fmt_usd(value)}")
    print(f"Debt minted:      {from_units(minted)} DSC")
    print(f"Health factor:    {fmt_hf(engine.get_health_factor('alice'))}")


def step_05_the_limit(engine: StablecoinEngine):
    """Try to borrow past 200% collateralization."""
    step_header(5, "The 200% Limit",
        "Any operation that leaves an account below 1.0 is rejected.")

    _, value = engine.get_account_information("alice")
    limit = value // 2
    headroom = limit - engine.get_debt_minted("alice")
    print(f"Alice can hold at most {fmt_usd(limit)} of debt; {fmt_usd(headroom)} is left.")

    print(f'\n>>> engine.mint_debt("alice", {headroom + 1})')
    try:
        engine.mint_debt("alice", headroom + 1)
    except HealthFactorBroken as e:
        print(f"Rejected: health factor would be {fmt_hf(e.health_factor)}")


# ============================================================================
# PHASE 3: ATOMICITY (Step 6)
# ============================================================================

def step_06_atomicity(engine: StablecoinEngine, weth: TokenLedger):
    """A rejected combined operation leaves nothing behind."""
    step_header(6, "Atomicity",
        "Both legs of a combined operation commit together or not at all.")

    fund(weth, "bob", to_units(Decimal("1")))
    events_before = len(engine.event_log)
    print('>>> engine.deposit_collateral_and_mint("bob", "WETH", 1 WETH, 5000 DSC)')
    try:
        engine.deposit_collateral_and_mint(
            "bob", "WETH", to_units(Decimal("1")), to_units(Decimal("5000"))
        )
    except HealthFactorBroken:
        pass

    section_header("After Rejection")
    print(f"Bob's deposit:      {engine.get_collateral_balance_of_user('bob', 'WETH')}")
    print(f"Bob's WETH wallet:  {from_units(weth.balance_of('bob'))}")
    print(f"New log entries:    {len(engine.event_log) - events_before}")


# ============================================================================
# PHASE 4: LIQUIDATION (Steps 7-8)
# ============================================================================

def step_07_crash_and_liquidate(engine: StablecoinEngine, weth: TokenLedger,
                                dsc: StableToken, eth_usd: StaticPriceFeed):
    """ETH crashes; a liquidator repays Alice's debt for a discount."""
    step_header(7, "Liquidation",
        "Anyone may repay an undercollateralized account's debt for a 10% bonus.")

    collateral = to_units(CONFIG.liquidator_collateral)
    debt = to_units(CONFIG.alice_debt)
    fund(weth, "liquidator", collateral)
    engine.deposit_collateral_and_mint("liquidator", "WETH", collateral, debt)
    dsc.approve("liquidator", debt)

    print(">>> liquidating a healthy account fails")
    try:
        engine.liquidate("liquidator", "WETH", "alice", debt)
    except HealthFactorOk as e:
        print(f"Rejected: health factor is {fmt_hf(e.health_factor)}")

    crash_time = CONFIG.start_time + timedelta(hours=1)
    engine.advance_time(crash_time)
    eth_usd.update_answer(CONFIG.crashed_eth_price * 10 ** 8, updated_at=crash_time)
    print(f"\nETH is now ${CONFIG.crashed_eth_price}.")
    print(f"Alice's health factor: {fmt_hf(engine.get_health_factor('alice'))}")

    print(f'\n>>> engine.liquidate("liquidator", "WETH", "alice", {debt})')
    quote = engine.liquidate("liquidator", "WETH", "alice", debt)

    section_header("Payout")
    print(f"Collateral for the debt: {from_units(quote.token_amount_from_debt)} WETH")
    print(f"Bonus:                   {from_units(quote.bonus_collateral)} WETH")
    print(f"Liquidator's wallet:     {from_units(weth.balance_of('liquidator'))} WETH")
    print(f"Alice's remaining:       {from_units(engine.get_collateral_balance_of_user('alice', 'WETH'))} WETH")
    print(f"Alice's health factor:   {fmt_hf(engine.get_health_factor('alice'))}")


def step_08_final_checks(engine: StablecoinEngine, dsc: StableToken):
    """Verify the system-wide invariants."""
    step_header(8, "Final Checks",
        "Custody covers every recorded deposit and supply matches recorded debt.")

    solvency = engine.verify_solvency()
    custody = engine.verify_custody()
    print(f"Solvency valid: {solvency['valid']}")
    print(f"Custody valid:  {custody['valid']}  recorded={custody['recorded']}")
    print(f"DSC supply:     {from_units(dsc.total_supply())}")
    print(f"Recorded debt:  {from_units(engine.positions.total_debt())}")

    section_header("Audit Trail")
    for event in engine.event_log:
        print(f"  #{event.sequence_number:<3} {type(event).__name__:<20} {event.timestamp}")


def main():
    print("=" * 70)
    print("       SYNTHETIC DOLLAR ENGINE TUTORIAL")
    print("=" * 70)

    weth, dsc = step_01_tokens()
    wait_for_enter()
    eth_usd = step_02_price_feed()
    wait_for_enter()
    engine = step_03_engine(weth, dsc, eth_usd)
    wait_for_enter()

    step_04_deposit_and_mint(engine, weth)
    wait_for_enter()
    step_05_the_limit(engine)
    wait_for_enter()

    step_06_atomicity(engine, weth)
    wait_for_enter()

    step_07_crash_and_liquidate(engine, weth, dsc, eth_usd)
    wait_for_enter()
    step_08_final_checks(engine, dsc)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    Next steps:
      - See stablecoin/engine.py for the operations
      - See stablecoin/solvency.py for the fixed-point math
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
