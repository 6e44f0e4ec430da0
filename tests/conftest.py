"""Pytest configuration and fixtures for analytics pipeline tests."""

import pytest
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from bch_analytics.models.config import PipelineConfig
from bch_analytics.models.records import SourceSnapshot


# ============================================================================
# CONFIG FIXTURES
# ============================================================================

@pytest.fixture
def db_url(tmp_path):
    """SQLite database file for the test."""
    return f"sqlite:///{tmp_path / 'bch_test.db'}"


@pytest.fixture
def config(db_url):
    """Pipeline configuration pointing at a temporary database."""
    return PipelineConfig(
        _env_file=None,
        db_user="test_user",
        db_password="test_pass",
        db_url=db_url,
        db_pool_size=2,
        db_max_overflow=2,
        log_file=None,
    )


@pytest.fixture
def max_ts():
    """Latest block timestamp in the sample source."""
    return datetime(2024, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# ============================================================================
# ROW BUILDERS
# ============================================================================

def make_tx(hash: str, block_timestamp: datetime, is_coinbase: bool = False,
            **extra: Any) -> Dict[str, Any]:
    row = {
        "hash": hash,
        "block_timestamp": block_timestamp,
        "is_coinbase": is_coinbase,
    }
    row.update(extra)
    return row


def make_output(transaction_hash: str, index: int, value: int, *addresses) -> Dict[str, Any]:
    return {
        "transaction_hash": transaction_hash,
        "index": index,
        "value": value,
        "addresses": list(addresses),
    }


def make_input(spent_transaction_hash, spent_output_index) -> Dict[str, Any]:
    return {
        "spent_transaction_hash": spent_transaction_hash,
        "spent_output_index": spent_output_index,
    }


# ============================================================================
# SAMPLE DATA FIXTURES
# ============================================================================

@pytest.fixture
def sample_snapshot(max_ts):
    """
    Source covering the simple-spend, fully-spent and coinbase-taint cases.
    
    Expected mart: A -> 5.0, D -> 0.75 (one of D's two outputs spent).
    """
    day = timedelta(days=1)
    transactions = [
        make_tx("t1", max_ts - 2 * day, fee=100),
        make_tx("t2", max_ts - 3 * day, fee=200),
        make_tx("t3", max_ts - 200 * day, is_coinbase=True),
        make_tx("t4", max_ts - day),
        make_tx("t5", max_ts - 5 * day),
        # Historical duplicate of t1 with an older timestamp
        make_tx("t1", max_ts - 4 * day, fee=999),
        make_tx("t6", max_ts),
    ]
    outputs = [
        make_output("t1", 0, 500_000_000, "A"),
        make_output("t2", 0, 100_000_000, "B"),
        make_output("t3", 0, 625_000_000, "C"),
        make_output("t4", 0, 200_000_000, "C"),
        make_output("t5", 0, 75_000_000, "D"),
        make_output("t5", 1, 25_000_000, "D"),
    ]
    inputs = [
        make_input("t2", 0),
        make_input("t5", 1),
        # Coinbase input: no prior output
        make_input(None, None),
    ]
    return SourceSnapshot(transactions=transactions, outputs=outputs, inputs=inputs)
