"""
test_position_ledger.py - Unit tests for PositionLedger
"""

import pytest

from stablecoin import PositionLedger, InsufficientBalance


class TestPositionLedger:

    def test_unknown_account_reads_zero(self):
        positions = PositionLedger()
        assert positions.get_collateral("nobody", "WETH") == 0
        assert positions.get_debt("nobody") == 0
        assert positions.get_collateral_map("nobody") == {}
        assert positions.accounts() == set()

    def test_reads_do_not_create_accounts(self):
        positions = PositionLedger()
        positions.get_collateral("nobody", "WETH")
        positions.get_debt("nobody")
        assert positions.accounts() == set()

    def test_credit_and_debit_collateral(self):
        positions = PositionLedger()
        assert positions.credit_collateral("alice", "WETH", 10) == 10
        assert positions.credit_collateral("alice", "WETH", 5) == 15
        assert positions.debit_collateral("alice", "WETH", 15) == 0
        # Zero entries persist
        assert positions.accounts() == {"alice"}
        assert positions.get_collateral_map("alice") == {"WETH": 0}

    def test_debit_collateral_beyond_balance(self):
        positions = PositionLedger()
        positions.credit_collateral("alice", "WETH", 10)
        with pytest.raises(InsufficientBalance):
            positions.debit_collateral("alice", "WETH", 11)
        assert positions.get_collateral("alice", "WETH") == 10

    def test_debt(self):
        positions = PositionLedger()
        positions.credit_debt("alice", 100)
        assert positions.debit_debt("alice", 40) == 60
        with pytest.raises(InsufficientBalance):
            positions.debit_debt("alice", 61)
        assert positions.get_debt("alice") == 60

    def test_totals(self):
        positions = PositionLedger()
        positions.credit_collateral("alice", "WETH", 10)
        positions.credit_collateral("bob", "WETH", 5)
        positions.credit_collateral("bob", "WBTC", 3)
        positions.credit_debt("alice", 7)
        positions.credit_debt("bob", 8)
        assert positions.total_collateral("WETH") == 15
        assert positions.total_collateral("WBTC") == 3
        assert positions.total_debt() == 15

    def test_snapshot_and_revert(self):
        positions = PositionLedger()
        positions.credit_collateral("alice", "WETH", 10)
        positions.credit_debt("alice", 3)
        snap = positions.snapshot()

        positions.credit_collateral("bob", "WBTC", 1)
        positions.debit_collateral("alice", "WETH", 10)
        positions.credit_debt("alice", 100)
        positions.revert(snap)

        assert positions.get_collateral("alice", "WETH") == 10
        assert positions.get_debt("alice") == 3
        assert positions.accounts() == {"alice"}
        # Restored ledger still defaults missing entries
        positions.credit_collateral("carol", "WETH", 1)
        assert positions.get_collateral("carol", "WETH") == 1

    def test_clone_is_independent(self):
        positions = PositionLedger()
        positions.credit_collateral("alice", "WETH", 10)
        positions.credit_debt("alice", 3)

        copy = positions.clone()
        copy.debit_collateral("alice", "WETH", 10)
        copy.credit_collateral("bob", "WBTC", 1)
        copy.credit_debt("alice", 5)

        assert positions.get_collateral("alice", "WETH") == 10
        assert positions.get_debt("alice") == 3
        assert positions.accounts() == {"alice"}
        assert copy.get_collateral("alice", "WETH") == 0
        assert copy.get_debt("alice") == 8
