"""Database manager for source reads and full-refresh table writes."""

from datetime import datetime
from typing import Any, Dict, List
from sqlalchemy import create_engine, text, select, delete, insert, Table
from sqlalchemy.pool import QueuePool
import structlog

from bch_analytics.models.config import PipelineConfig
from bch_analytics.utils.time_utils import to_utc
from bch_analytics.models.records import (
    Row, SourceSnapshot, StagingResult, BalanceResult
)
from bch_analytics.database.models import (
    Base, SOURCE_TABLES, TARGET_TABLES,
    SourceTransaction, SourceOutput, SourceInput,
    StagingTransaction, AddressCurrentBalance
)

logger = structlog.get_logger(__name__)

# Surrogate key on source tables, not part of the public dataset
SURROGATE_KEY = 'row_id'


def _table_columns(table: Table) -> List[str]:
    return [c.name for c in table.columns if c.name != SURROGATE_KEY]


def _to_db_value(value: Any) -> Any:
    # Backends without timestamptz drop the offset, so store UTC
    if isinstance(value, datetime):
        return to_utc(value)
    return value


class DatabaseManager:
    """Manages database connections and operations."""
    
    def __init__(self, config: PipelineConfig):
        self.config = config
        self.logger = logger.bind(component="database_manager")
        
        # Create engine with connection pooling
        self.engine = create_engine(
            config.database_url,
            poolclass=QueuePool,
            pool_size=config.db_pool_size,
            max_overflow=config.db_max_overflow,
            pool_pre_ping=True,
            echo=False
        )
        
        self.logger.info("Database manager initialized",
                        host=config.db_host,
                        database=config.db_name)
    
    def test_connection(self) -> bool:
        """Test database connection."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            self.logger.info("Database connection successful")
            return True
        except Exception as e:
            self.logger.error("Database connection failed", error=str(e))
            return False
    
    def create_tables(self, include_source: bool = False):
        """Create the derived tables, and the source tables if asked."""
        tables = list(TARGET_TABLES)
        if include_source:
            tables = SOURCE_TABLES + tables
        Base.metadata.create_all(bind=self.engine, tables=tables)
        self.logger.info("Database tables created",
                        tables=[t.name for t in tables])
    
    # ============================================================================
    # SOURCE READS
    # ============================================================================
    
    def _fetch_all(self, table: Table, columns: List[str]) -> List[Row]:
        stmt = select(*[table.c[name] for name in columns])
        with self.engine.connect() as conn:
            result = conn.execution_options(yield_per=self.config.chunk_size).execute(stmt)
            return [dict(row._mapping) for row in result]
    
    def fetch_transactions(self) -> List[Row]:
        """Get all transaction rows (every public column)."""
        table = SourceTransaction.__table__
        return self._fetch_all(table, _table_columns(table))
    
    def fetch_outputs(self) -> List[Row]:
        """Get all output rows."""
        return self._fetch_all(SourceOutput.__table__,
                               ['transaction_hash', 'index', 'value', 'addresses'])
    
    def fetch_inputs(self) -> List[Row]:
        """Get all input spend references."""
        return self._fetch_all(SourceInput.__table__,
                               ['spent_transaction_hash', 'spent_output_index'])
    
    def load_snapshot(self) -> SourceSnapshot:
        """Read the three source streams."""
        snapshot = SourceSnapshot(
            transactions=self.fetch_transactions(),
            outputs=self.fetch_outputs(),
            inputs=self.fetch_inputs(),
        )
        self.logger.info("Source snapshot loaded", **snapshot.counts())
        return snapshot
    
    def insert_source(self, snapshot: SourceSnapshot):
        """Load a snapshot into the source tables (fixtures and local setups)."""
        with self.engine.begin() as conn:
            for table, rows in (
                (SourceTransaction.__table__, snapshot.transactions),
                (SourceOutput.__table__, snapshot.outputs),
                (SourceInput.__table__, snapshot.inputs),
            ):
                if rows:
                    conn.execute(insert(table), self._project(table, rows))
    
    # ============================================================================
    # FULL-REFRESH WRITES
    # ============================================================================
    
    def _project(self, table: Table, rows: List[Row]) -> List[Dict[str, Any]]:
        columns = _table_columns(table)
        return [{name: _to_db_value(row.get(name)) for name in columns} for row in rows]
    
    def replace_staging(self, result: StagingResult) -> int:
        """
        Replace the staging table contents in one transaction.
        
        Rows are written one day-partition at a time.
        
        Returns:
            Number of rows written
        """
        table = StagingTransaction.__table__
        written = 0
        
        with self.engine.begin() as conn:
            conn.execute(delete(table))
            for day, rows in result.partitions().items():
                conn.execute(insert(table), self._project(table, rows))
                written += len(rows)
                self.logger.debug("Staging partition written",
                                  partition=day.isoformat(),
                                  rows=len(rows))
        
        self.logger.info("Staging table replaced", table=table.name, rows=written)
        return written
    
    def replace_mart(self, result: BalanceResult) -> int:
        """
        Replace the balance mart contents in one transaction.
        
        Returns:
            Number of rows written
        """
        table = AddressCurrentBalance.__table__
        rows = [b.to_dict() for b in result.balances]
        
        with self.engine.begin() as conn:
            conn.execute(delete(table))
            if rows:
                conn.execute(insert(table), rows)
        
        self.logger.info("Mart table replaced", table=table.name, rows=len(rows))
        return len(rows)
    
    # ============================================================================
    # DERIVED READS
    # ============================================================================
    
    def fetch_staging_rows(self) -> List[Row]:
        """Get the materialized staging rows."""
        table = StagingTransaction.__table__
        return self._fetch_all(table, _table_columns(table))
    
    def fetch_mart_rows(self) -> List[Row]:
        """Get the materialized balance rows."""
        return self._fetch_all(AddressCurrentBalance.__table__, ['address', 'balance_bch'])
    
    def close(self):
        """Close database connections."""
        self.engine.dispose()
        self.logger.info("Database connections closed")
