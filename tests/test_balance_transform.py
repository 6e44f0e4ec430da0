"""
Unit tests for the balance transform.

Tests output expansion, spend marking, aggregation and coinbase exclusion.
"""

import pytest
from decimal import Decimal
from datetime import timedelta

from bch_analytics.core.balance import (
    BalanceTransform, expand_outputs, collect_spent_keys, filter_unspent,
    aggregate_balances, collect_coinbase_addresses, satoshis_to_coin
)
from bch_analytics.core.exceptions import BalanceOverflowError
from tests.conftest import make_tx, make_output, make_input


def balances_by_address(result):
    return {b.address: b.balance_bch for b in result.balances}


class TestStageFunctions:
    """Tests for the individual relational stages."""
    
    def test_expand_one_unit_per_address(self):
        """Test multi-address outputs attribute full value to each address."""
        units = list(expand_outputs([make_output("t1", 0, 1000, "A", "B")]))
        
        assert [(u.address, u.value, u.output_index) for u in units] == [
            ("A", 1000, 0), ("B", 1000, 0)
        ]
    
    def test_expand_drops_null_and_empty_addresses(self):
        """Test null entries and empty address lists produce no units."""
        outputs = [
            make_output("t1", 0, 1000, "A", None),
            make_output("t2", 0, 1000),
            {"transaction_hash": "t3", "index": 0, "value": 5, "addresses": None},
        ]
        
        units = list(expand_outputs(outputs))
        
        assert [u.address for u in units] == ["A"]
    
    def test_spent_keys_ignore_null_references(self):
        """Test coinbase inputs contribute nothing to the spent set."""
        inputs = [make_input("t1", 0), make_input(None, None), make_input("t2", None)]
        
        assert collect_spent_keys(inputs) == {("t1", 0)}
    
    def test_spent_output_excluded_for_every_address(self):
        """Test a spent output drops all of its address units."""
        units = list(expand_outputs([
            make_output("t1", 0, 1000, "A", "B"),
            make_output("t1", 1, 500, "A"),
        ]))
        
        unspent = list(filter_unspent(units, {("t1", 0)}))
        
        assert [(u.address, u.output_index) for u in unspent] == [("A", 1)]
    
    def test_spend_key_matches_hash_and_index(self):
        """Test the same index on another transaction is not spent."""
        units = list(expand_outputs([make_output("t2", 0, 10, "A")]))
        
        assert len(list(filter_unspent(units, {("t1", 0)}))) == 1
    
    def test_aggregate_sums_per_address(self):
        """Test values are summed per address."""
        units = expand_outputs([
            make_output("t1", 0, 100, "A"),
            make_output("t2", 0, 250, "A"),
            make_output("t3", 0, 7, "B"),
        ])
        
        assert aggregate_balances(units) == {"A": 350, "B": 7}
    
    def test_aggregate_skips_null_values(self):
        """Test null values are ignored, and all-null stays null."""
        units = expand_outputs([
            make_output("t1", 0, None, "A"),
            make_output("t2", 0, 40, "A"),
            make_output("t3", 0, None, "B"),
        ])
        
        assert aggregate_balances(units) == {"A": 40, "B": None}
    
    def test_coinbase_addresses(self):
        """Test coinbase addresses come from outputs of coinbase transactions."""
        units = list(expand_outputs([
            make_output("cb", 0, 625, "M1", "M2"),
            make_output("tx", 0, 10, "U"),
        ]))
        transactions = [
            make_tx("cb", None, is_coinbase=True),
            make_tx("tx", None, is_coinbase=False),
            make_tx("unknown", None, is_coinbase=None),
        ]
        
        assert collect_coinbase_addresses(units, transactions) == {"M1", "M2"}
    
    def test_satoshis_to_coin(self):
        """Test conversion uses the fixed 1e8 divisor without rounding."""
        assert satoshis_to_coin(500_000_000) == Decimal("5")
        assert satoshis_to_coin(1) == Decimal("0.00000001")
        assert satoshis_to_coin(0) == Decimal("0")
        assert satoshis_to_coin(None) is None


class TestBalanceTransform:
    """Tests for the composed balance transform."""
    
    def test_simple_unspent_output(self, config, max_ts):
        """Test an unspent output of 5 coins yields (A, 5.0)."""
        result = BalanceTransform(config).run(
            outputs=[make_output("T1", 0, 500_000_000, "A")],
            inputs=[],
            transactions=[make_tx("T1", max_ts)],
        )
        
        assert balances_by_address(result) == {"A": Decimal("5.0")}
    
    def test_fully_spent_address_has_no_row(self, config, max_ts):
        """Test an address with every output spent is absent, not zero."""
        result = BalanceTransform(config).run(
            outputs=[make_output("T2", 0, 100_000_000, "B")],
            inputs=[make_input("T2", 0)],
            transactions=[make_tx("T2", max_ts)],
        )
        
        assert result.balances == []
    
    def test_coinbase_taint_excludes_address(self, config, max_ts):
        """Test a coinbase-tagged address is dropped despite a legitimate balance."""
        result = BalanceTransform(config).run(
            outputs=[
                make_output("T3", 0, 625_000_000, "C"),
                make_output("T4", 0, 200_000_000, "C"),
                make_output("T4", 1, 300_000_000, "E"),
            ],
            inputs=[make_input("T3", 0)],
            transactions=[
                make_tx("T3", max_ts - timedelta(days=400), is_coinbase=True),
                make_tx("T4", max_ts),
            ],
        )
        
        assert balances_by_address(result) == {"E": Decimal("3")}
        assert result.excluded_address_count == 1
    
    def test_coinbase_taint_uses_full_history(self, config, sample_snapshot):
        """Test coinbase transactions outside the staging window still taint."""
        result = BalanceTransform(config).run(
            sample_snapshot.outputs, sample_snapshot.inputs, sample_snapshot.transactions
        )
        
        assert balances_by_address(result) == {
            "A": Decimal("5"),
            "D": Decimal("0.75"),
        }
    
    def test_invariants_hold(self, config, sample_snapshot):
        """Test non-negativity, uniqueness and conservation on the sample."""
        result = BalanceTransform(config).run(
            sample_snapshot.outputs, sample_snapshot.inputs, sample_snapshot.transactions
        )
        
        addresses = [b.address for b in result.balances]
        assert addresses == sorted(set(addresses))
        assert all(b.balance_bch >= 0 for b in result.balances)
        assert result.total_balance_sats == result.unspent_untainted_sats == 575_000_000
    
    def test_duplicate_coinbase_rows_are_harmless(self, config, max_ts):
        """Test repeated transaction rows do not change the outcome."""
        transactions = [make_tx("cb", max_ts, is_coinbase=True)] * 3
        result = BalanceTransform(config).run(
            outputs=[make_output("cb", 0, 625, "M"), make_output("x", 0, 10, "U")],
            inputs=[],
            transactions=transactions,
        )
        
        assert balances_by_address(result) == {"U": Decimal("0.0000001")}
    
    def test_overflow_raises(self, config, max_ts):
        """Test balances above the configured ceiling are fatal."""
        config.max_balance_sats = 1000
        
        with pytest.raises(BalanceOverflowError) as exc_info:
            BalanceTransform(config).run(
                outputs=[make_output("t1", 0, 600, "A"), make_output("t2", 0, 600, "A")],
                inputs=[],
                transactions=[],
            )
        
        assert exc_info.value.address == "A"
        assert exc_info.value.balance_sats == 1200
    
    def test_large_balances_do_not_wrap(self, config):
        """Test totals beyond 32-bit range are summed exactly."""
        supply = 21_000_000 * 100_000_000
        result = BalanceTransform(config).run(
            outputs=[make_output(f"t{i}", 0, supply, "W") for i in range(3)],
            inputs=[],
            transactions=[],
        )
        
        assert result.balances[0].balance_sats == 3 * supply
        assert result.balances[0].balance_bch == Decimal(63_000_000)
