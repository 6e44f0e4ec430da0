"""Staging transform: windowed, deduplicated transactions."""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple
import structlog

from bch_analytics.models.config import PipelineConfig
from bch_analytics.models.records import Row, StagingResult
from bch_analytics.utils.time_utils import to_utc, window_start

logger = structlog.get_logger(__name__)


def _row_fingerprint(row: Row) -> Tuple:
    """Canonical ordering key over every column of a row.
    
    Used as the last tie-breaker so that two rows sharing hash and
    block_timestamp resolve the same way regardless of input order.
    """
    return tuple(sorted((str(k), repr(v)) for k, v in row.items()))


def _rank_key(row: Row, timestamp: datetime) -> Tuple:
    # Greater key wins: latest timestamp, then greatest hash
    return (timestamp, row.get('hash') or "", _row_fingerprint(row))


class StagingTransform:
    """Builds the canonical transaction set over a trailing window.
    
    The window is anchored at the latest ``block_timestamp`` in the source
    rather than wall-clock time, so replaying an old snapshot yields the
    same result.
    """
    
    def __init__(self, config: PipelineConfig):
        self.config = config
        self.window_days = config.staging_window_days
        self.logger = logger.bind(component="staging_transform")
    
    def run(self, transactions: Iterable[Row]) -> StagingResult:
        """
        Window and deduplicate transaction rows.
        
        Args:
            transactions: Full transaction stream (all history)
            
        Returns:
            StagingResult with one row per distinct in-window hash
        """
        rows = list(transactions)
        max_ts = self._max_timestamp(rows)
        
        if max_ts is None:
            self.logger.info("No timestamped transactions in source, staging is empty",
                             source_rows=len(rows))
            return StagingResult(source_row_count=len(rows))
        
        start = window_start(max_ts, self.window_days)
        
        best: Dict[Any, Tuple[Tuple, Row]] = {}
        windowed = 0
        
        for row in rows:
            ts = row.get('block_timestamp')
            if ts is None:
                continue
            ts = to_utc(ts)
            if ts < start:
                continue
            
            windowed += 1
            key = _rank_key(row, ts)
            current = best.get(row.get('hash'))
            if current is None or key > current[0]:
                best[row.get('hash')] = (key, row)
        
        staged: List[Row] = []
        for _, row in best.values():
            out = dict(row)
            out['tx_hash'] = row.get('hash')
            staged.append(out)
        
        staged.sort(key=lambda r: (r['tx_hash'] is None, r['tx_hash'] or ""))
        
        result = StagingResult(
            rows=staged,
            max_timestamp=max_ts,
            window_start=start,
            source_row_count=len(rows),
            windowed_row_count=windowed,
            duplicates_removed=windowed - len(staged),
        )
        
        self.logger.info("Staging transform completed", **result.to_dict())
        return result
    
    def _max_timestamp(self, rows: List[Row]) -> Optional[datetime]:
        timestamps = [to_utc(r['block_timestamp']) for r in rows
                      if r.get('block_timestamp') is not None]
        return max(timestamps) if timestamps else None
