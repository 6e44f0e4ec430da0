"""Balance transform: current UTXO balance per address."""

from decimal import Decimal
from typing import Dict, Iterable, Iterator, List, Optional, Set, Tuple
import structlog

from bch_analytics.core.exceptions import BalanceOverflowError
from bch_analytics.models.config import PipelineConfig
from bch_analytics.models.records import (
    Row, OutputAddressUnit, AddressBalance, BalanceResult
)

logger = structlog.get_logger(__name__)

SATOSHIS_PER_COIN = Decimal(100_000_000)

OutputKey = Tuple[str, int]


def expand_outputs(outputs: Iterable[Row]) -> Iterator[OutputAddressUnit]:
    """Expand each output into one unit per non-null address."""
    for output in outputs:
        for address in output.get('addresses') or []:
            if address is None:
                continue
            yield OutputAddressUnit(
                transaction_hash=output.get('transaction_hash'),
                output_index=output.get('index'),
                value=output.get('value'),
                address=address,
            )


def collect_spent_keys(inputs: Iterable[Row]) -> Set[OutputKey]:
    """Build the set of (transaction_hash, output_index) keys consumed by inputs."""
    spent = set()
    for row in inputs:
        tx_hash = row.get('spent_transaction_hash')
        index = row.get('spent_output_index')
        # A null on either side of the join key never matches an output
        if tx_hash is None or index is None:
            continue
        spent.add((tx_hash, index))
    return spent


def filter_unspent(units: Iterable[OutputAddressUnit],
                   spent: Set[OutputKey]) -> Iterator[OutputAddressUnit]:
    """Anti-join units against the spent key set."""
    for unit in units:
        if unit.output_index is None or unit.key not in spent:
            yield unit


def aggregate_balances(units: Iterable[OutputAddressUnit]) -> Dict[str, Optional[int]]:
    """
    Sum unit values per address.
    
    Null values are skipped; an address with only null values keeps a
    null balance.
    """
    balances: Dict[str, Optional[int]] = {}
    for unit in units:
        current = balances.get(unit.address)
        if unit.value is None:
            balances.setdefault(unit.address, None)
        elif current is None:
            balances[unit.address] = unit.value
        else:
            balances[unit.address] = current + unit.value
    return balances


def collect_coinbase_addresses(units: Iterable[OutputAddressUnit],
                               transactions: Iterable[Row]) -> Set[str]:
    """Addresses appearing in any output of a coinbase transaction."""
    coinbase_hashes = {
        tx.get('hash') for tx in transactions
        if tx.get('is_coinbase') is True
    }
    return {u.address for u in units if u.transaction_hash in coinbase_hashes}


def satoshis_to_coin(balance_sats: Optional[int]) -> Optional[Decimal]:
    """Convert satoshis to whole coins."""
    if balance_sats is None:
        return None
    return Decimal(balance_sats) / SATOSHIS_PER_COIN


class BalanceTransform:
    """Computes current balances from unspent outputs.
    
    Works over the full, unwindowed history. Any address that ever received
    a coinbase output is excluded from the result entirely, whatever its
    other activity.
    """
    
    def __init__(self, config: PipelineConfig):
        self.config = config
        self.max_balance_sats = config.max_balance_sats
        self.logger = logger.bind(component="balance_transform")
    
    def run(self, outputs: Iterable[Row], inputs: Iterable[Row],
            transactions: Iterable[Row]) -> BalanceResult:
        """
        Compute per-address balances.
        
        Args:
            outputs: Output rows (transaction_hash, index, value, addresses)
            inputs: Input rows (spent_transaction_hash, spent_output_index)
            transactions: Transaction rows (hash, is_coinbase)
            
        Returns:
            BalanceResult sorted by address
        """
        units = list(expand_outputs(outputs))
        spent = collect_spent_keys(inputs)
        unspent = list(filter_unspent(units, spent))
        
        self.logger.debug("Outputs expanded",
                          output_units=len(units),
                          spent_keys=len(spent),
                          unspent_units=len(unspent))
        
        balances = aggregate_balances(unspent)
        coinbase_addresses = collect_coinbase_addresses(units, transactions)
        
        results: List[AddressBalance] = []
        excluded = 0
        for address in sorted(balances):
            if address in coinbase_addresses:
                excluded += 1
                continue
            
            balance_sats = balances[address]
            if balance_sats is not None and balance_sats > self.max_balance_sats:
                raise BalanceOverflowError(address, balance_sats, self.max_balance_sats)
            
            results.append(AddressBalance(
                address=address,
                balance_sats=balance_sats,
                balance_bch=satoshis_to_coin(balance_sats),
            ))
        
        untainted_sats = sum(
            u.value for u in unspent
            if u.value is not None and u.address not in coinbase_addresses
        )
        
        result = BalanceResult(
            balances=results,
            output_unit_count=len(units),
            spent_key_count=len(spent),
            unspent_unit_count=len(unspent),
            coinbase_address_count=len(coinbase_addresses),
            excluded_address_count=excluded,
            unspent_untainted_sats=untainted_sats,
        )
        
        self.logger.info("Balance transform completed", **result.to_dict())
        return result
