"""
Data quality checks for source streams and derived tables.

Derived-table checks are contracts: a failure means a logic defect and
aborts the run. Source checks are deliberately loose since the source is
known to carry historical duplicates and is not owned by this pipeline.
"""

from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
from enum import Enum
import structlog

from bch_analytics.core.exceptions import ContractViolationError, SourceValidationError
from bch_analytics.models.config import PipelineConfig
from bch_analytics.models.records import (
    Row, SourceSnapshot, StagingResult, BalanceResult
)
from bch_analytics.utils.time_utils import to_utc

logger = structlog.get_logger(__name__)


class Severity(str, Enum):
    """How a failed check is treated."""
    WARN = "warn"
    ERROR = "error"


STAGING_TABLE = "stg_bch_transactions_last_3m"
MART_TABLE = "address_current_balance"

# Number of offending values kept on a failed check
SAMPLE_SIZE = 5


@dataclass
class CheckResult:
    """Outcome of a single quality check."""
    name: str
    table: str
    column: Optional[str]
    passed: bool
    failures: int = 0
    severity: Severity = Severity.ERROR
    sample: List[Any] = field(default_factory=list)
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "table": self.table,
            "column": self.column,
            "passed": self.passed,
            "failures": self.failures,
            "severity": self.severity.value,
        }


# ============================================================
# Generic checks
# ============================================================

def check_not_null(rows: Iterable[Row], column: str, table: str,
                   severity: Severity = Severity.ERROR) -> CheckResult:
    """Every row has a non-null value in ``column``."""
    failures = sum(1 for row in rows if row.get(column) is None)
    return CheckResult(
        name="not_null", table=table, column=column,
        passed=failures == 0, failures=failures, severity=severity,
    )


def check_unique(rows: Iterable[Row], column: str, table: str,
                 severity: Severity = Severity.ERROR) -> CheckResult:
    """No non-null value of ``column`` appears more than once."""
    seen = set()
    duplicates = []
    for row in rows:
        value = row.get(column)
        if value is None:
            continue
        if value in seen:
            duplicates.append(value)
        seen.add(value)
    return CheckResult(
        name="unique", table=table, column=column,
        passed=not duplicates, failures=len(duplicates), severity=severity,
        sample=duplicates[:SAMPLE_SIZE],
    )


def check_non_negative(rows: Iterable[Row], column: str, table: str,
                       severity: Severity = Severity.ERROR) -> CheckResult:
    """Every non-null value of ``column`` is >= 0."""
    negatives = [row.get(column) for row in rows
                 if row.get(column) is not None and row.get(column) < 0]
    return CheckResult(
        name="non_negative", table=table, column=column,
        passed=not negatives, failures=len(negatives), severity=severity,
        sample=negatives[:SAMPLE_SIZE],
    )


# ============================================================
# Quality Checker
# ============================================================

class QualityChecker:
    """Runs source and contract checks and enforces the outcome."""
    
    def __init__(self, config: PipelineConfig):
        self.config = config
        self.source_severity = Severity(config.source_check_severity)
        self.logger = logger.bind(component="quality_checker")
    
    def validate_source(self, snapshot: SourceSnapshot) -> List[CheckResult]:
        """Loose not_null checks on the fields the source reliably fills."""
        severity = self.source_severity
        return [
            check_not_null(snapshot.transactions, "hash", "transactions", severity),
            check_not_null(snapshot.transactions, "block_timestamp", "transactions", severity),
            check_not_null(snapshot.outputs, "transaction_hash", "outputs", severity),
        ]
    
    def validate_staging(self, result: StagingResult) -> List[CheckResult]:
        """Contract checks on the staging table."""
        rows = result.rows
        checks = [
            check_not_null(rows, "tx_hash", STAGING_TABLE),
            check_unique(rows, "tx_hash", STAGING_TABLE),
            check_not_null(rows, "block_timestamp", STAGING_TABLE),
        ]
        
        if result.window_start is not None:
            outside = [r.get('tx_hash') for r in rows
                       if r.get('block_timestamp') is not None
                       and to_utc(r['block_timestamp']) < result.window_start]
            checks.append(CheckResult(
                name="within_window", table=STAGING_TABLE, column="block_timestamp",
                passed=not outside, failures=len(outside),
                sample=outside[:SAMPLE_SIZE],
            ))
        
        return checks
    
    def validate_mart(self, result: BalanceResult) -> List[CheckResult]:
        """Contract checks on the balance mart."""
        rows = [b.to_dict() for b in result.balances]
        checks = self.validate_mart_rows(rows)
        
        total = result.total_balance_sats
        conserved = total == result.unspent_untainted_sats
        checks.append(CheckResult(
            name="conservation", table=MART_TABLE, column="balance_bch",
            passed=conserved,
            failures=0 if conserved else 1,
            sample=[] if conserved else [total, result.unspent_untainted_sats],
        ))
        return checks
    
    def validate_mart_rows(self, rows: List[Row]) -> List[CheckResult]:
        return [
            check_not_null(rows, "address", MART_TABLE),
            check_unique(rows, "address", MART_TABLE),
            check_not_null(rows, "balance_bch", MART_TABLE),
            check_non_negative(rows, "balance_bch", MART_TABLE),
        ]
    
    def enforce(self, results: List[CheckResult], source: bool = False) -> None:
        """
        Raise if any error-severity check failed.
        
        Args:
            results: Check results to inspect
            source: Raise SourceValidationError instead of ContractViolationError
            
        Raises:
            ContractViolationError: On any failed error-severity check
        """
        failed = []
        for check in results:
            if check.passed:
                continue
            if check.severity == Severity.WARN:
                self.logger.warning("Quality check failed", **check.to_dict())
            else:
                self.logger.error("Quality check failed", sample=check.sample, **check.to_dict())
                failed.append(check)
        
        if failed:
            names = ", ".join(f"{c.table}.{c.column}:{c.name}" for c in failed)
            error_cls = SourceValidationError if source else ContractViolationError
            raise error_cls(f"{len(failed)} quality check(s) failed: {names}", failed)
        
        self.logger.debug("Quality checks passed", checks=len(results))
