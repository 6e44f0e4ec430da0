"""Record and result models for the staging and balance transforms."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from dataclasses import dataclass, field

from bch_analytics.utils.time_utils import partition_day


# Source rows are kept as column-name mappings, the way they come off the database
Row = Dict[str, Any]


@dataclass(frozen=True)
class OutputAddressUnit:
    """One (output, address) pair: the atomic unit of balance attribution."""
    transaction_hash: str
    output_index: Optional[int]
    value: Optional[int]
    address: str
    
    @property
    def key(self):
        return (self.transaction_hash, self.output_index)


@dataclass
class AddressBalance:
    """Current balance of a single address."""
    address: Optional[str]
    balance_sats: Optional[int]
    balance_bch: Optional[Decimal]
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "address": self.address,
            "balance_bch": self.balance_bch,
        }


@dataclass
class SourceSnapshot:
    """A single read of the three source streams."""
    transactions: List[Row] = field(default_factory=list)
    outputs: List[Row] = field(default_factory=list)
    inputs: List[Row] = field(default_factory=list)
    
    def counts(self) -> Dict[str, int]:
        return {
            "transactions": len(self.transactions),
            "outputs": len(self.outputs),
            "inputs": len(self.inputs),
        }


@dataclass
class StagingResult:
    """Output of the staging transform."""
    rows: List[Row] = field(default_factory=list)
    max_timestamp: Optional[datetime] = None
    window_start: Optional[datetime] = None
    
    # Counters
    source_row_count: int = 0
    windowed_row_count: int = 0
    duplicates_removed: int = 0
    
    def partitions(self) -> Dict[date, List[Row]]:
        """Group rows by UTC day of block_timestamp."""
        partitions: Dict[date, List[Row]] = {}
        for row in self.rows:
            partitions.setdefault(partition_day(row['block_timestamp']), []).append(row)
        return dict(sorted(partitions.items()))
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "rows": len(self.rows),
            "max_timestamp": self.max_timestamp.isoformat() if self.max_timestamp else None,
            "window_start": self.window_start.isoformat() if self.window_start else None,
            "source_row_count": self.source_row_count,
            "windowed_row_count": self.windowed_row_count,
            "duplicates_removed": self.duplicates_removed,
        }


@dataclass
class BalanceResult:
    """Output of the balance transform."""
    balances: List[AddressBalance] = field(default_factory=list)
    
    # Stage counters
    output_unit_count: int = 0
    spent_key_count: int = 0
    unspent_unit_count: int = 0
    coinbase_address_count: int = 0
    excluded_address_count: int = 0
    
    # Value of unspent units whose address is not coinbase-tainted, summed
    # straight from the units rather than from the per-address aggregates
    unspent_untainted_sats: int = 0
    
    @property
    def total_balance_sats(self) -> int:
        return sum(b.balance_sats for b in self.balances if b.balance_sats is not None)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "addresses": len(self.balances),
            "output_unit_count": self.output_unit_count,
            "spent_key_count": self.spent_key_count,
            "unspent_unit_count": self.unspent_unit_count,
            "coinbase_address_count": self.coinbase_address_count,
            "excluded_address_count": self.excluded_address_count,
            "total_balance_sats": self.total_balance_sats,
        }
