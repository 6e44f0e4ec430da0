"""Data models for the analytics pipeline."""

from bch_analytics.models.config import PipelineConfig
from bch_analytics.models.records import (
    OutputAddressUnit, AddressBalance, SourceSnapshot,
    StagingResult, BalanceResult
)

__all__ = [
    "PipelineConfig",
    "OutputAddressUnit",
    "AddressBalance",
    "SourceSnapshot",
    "StagingResult",
    "BalanceResult",
]
