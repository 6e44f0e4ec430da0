"""Pipeline orchestrating the staging and balance transforms."""

from concurrent.futures import ThreadPoolExecutor
from typing import Any, Dict, Iterable, List, Optional
from dataclasses import dataclass, field
import structlog

from bch_analytics.core.balance import BalanceTransform
from bch_analytics.core.quality import CheckResult, QualityChecker
from bch_analytics.core.staging import StagingTransform
from bch_analytics.database.manager import DatabaseManager
from bch_analytics.models.config import PipelineConfig
from bch_analytics.models.records import SourceSnapshot, StagingResult, BalanceResult
from bch_analytics.utils.time_utils import to_utc, window_start

logger = structlog.get_logger(__name__)

STAGING = "staging"
MART = "mart"
MODELS = (STAGING, MART)


@dataclass
class PipelineResult:
    """Outcome of a pipeline run."""
    staging: Optional[StagingResult] = None
    mart: Optional[BalanceResult] = None
    checks: List[CheckResult] = field(default_factory=list)
    rows_written: Dict[str, int] = field(default_factory=dict)
    materialized: bool = False
    
    def to_dict(self) -> Dict[str, Any]:
        return {
            "staging": self.staging.to_dict() if self.staging else None,
            "mart": self.mart.to_dict() if self.mart else None,
            "checks_run": len(self.checks),
            "rows_written": self.rows_written,
            "materialized": self.materialized,
        }


class AnalyticsPipeline:
    """Runs both transforms over one source snapshot and publishes the tables.
    
    Every run recomputes the tables from the full source. Nothing is written
    unless every selected transform passes its contract checks.
    """
    
    def __init__(self, config: PipelineConfig,
                 db_manager: Optional[DatabaseManager] = None):
        self.config = config
        self.logger = logger.bind(component="analytics_pipeline")
        
        self.db_manager = db_manager or DatabaseManager(config)
        self.staging_transform = StagingTransform(config)
        self.balance_transform = BalanceTransform(config)
        self.quality = QualityChecker(config)
    
    def initialize(self) -> bool:
        """Verify configuration and connectivity, create the derived tables."""
        if not self.config.validate_settings():
            self.logger.error("Invalid pipeline configuration")
            return False
        
        if not self.db_manager.test_connection():
            self.logger.error("Failed to connect to database")
            return False
        
        self.db_manager.create_tables()
        self.logger.info("Analytics pipeline initialized")
        return True
    
    def run(self, snapshot: Optional[SourceSnapshot] = None,
            select: Iterable[str] = MODELS,
            materialize: bool = True) -> PipelineResult:
        """
        Run the selected transforms.
        
        Args:
            snapshot: Source data; read from the database when omitted
            select: Models to build ("staging", "mart")
            materialize: Write results to the derived tables
            
        Returns:
            PipelineResult
            
        Raises:
            ContractViolationError: A derived table failed its checks
            BalanceOverflowError: A balance exceeded the configured limit
        """
        select = set(select)
        selected = [m for m in MODELS if m in select]
        unknown = select - set(MODELS)
        if unknown:
            raise ValueError(f"Unknown models: {sorted(unknown)}")
        
        if snapshot is None:
            snapshot = self.db_manager.load_snapshot()
        
        self.logger.info("Pipeline run started", models=selected, **snapshot.counts())
        
        result = PipelineResult()
        
        source_checks = self.quality.validate_source(snapshot)
        self.quality.enforce(source_checks, source=True)
        result.checks.extend(source_checks)
        
        outputs = self._run_transforms(snapshot, selected)
        result.staging = outputs.get(STAGING)
        result.mart = outputs.get(MART)
        
        # Validate everything before touching any table
        contract_checks: List[CheckResult] = []
        if result.staging is not None:
            contract_checks.extend(self.quality.validate_staging(result.staging))
        if result.mart is not None:
            contract_checks.extend(self.quality.validate_mart(result.mart))
        self.quality.enforce(contract_checks)
        result.checks.extend(contract_checks)
        
        if materialize:
            if result.staging is not None:
                result.rows_written[STAGING] = self.db_manager.replace_staging(result.staging)
            if result.mart is not None:
                result.rows_written[MART] = self.db_manager.replace_mart(result.mart)
            result.materialized = True
        
        self.logger.info("Pipeline run completed", **result.to_dict())
        return result
    
    def _run_transforms(self, snapshot: SourceSnapshot,
                        selected: List[str]) -> Dict[str, Any]:
        tasks = {
            STAGING: lambda: self.staging_transform.run(snapshot.transactions),
            MART: lambda: self.balance_transform.run(
                snapshot.outputs, snapshot.inputs, snapshot.transactions
            ),
        }
        
        if self.config.enable_parallel_processing and len(selected) > 1:
            # The transforms share no state, so they can run side by side
            with ThreadPoolExecutor(max_workers=len(selected)) as executor:
                futures = {name: executor.submit(tasks[name]) for name in selected}
                return {name: future.result() for name, future in futures.items()}
        
        return {name: tasks[name]() for name in selected}
    
    def check_materialized(self) -> List[CheckResult]:
        """Re-run the contract checks against the published tables."""
        staging_rows = self.db_manager.fetch_staging_rows()
        # The newest source row always survives the window, so the staged
        # maximum is the window anchor
        timestamps = [to_utc(r["block_timestamp"]) for r in staging_rows
                      if r.get("block_timestamp") is not None]
        anchor = max(timestamps) if timestamps else None
        staging = StagingResult(
            rows=staging_rows,
            max_timestamp=anchor,
            window_start=window_start(anchor, self.config.staging_window_days),
        )
        
        checks = self.quality.validate_staging(staging)
        checks.extend(self.quality.validate_mart_rows(self.db_manager.fetch_mart_rows()))
        return checks
    
    def close(self):
        """Close all connections and cleanup."""
        self.logger.info("Shutting down analytics pipeline...")
        self.db_manager.close()
