"""Core transforms and orchestration."""

from bch_analytics.core.staging import StagingTransform
from bch_analytics.core.balance import BalanceTransform
from bch_analytics.core.quality import QualityChecker

__all__ = [
    "StagingTransform",
    "BalanceTransform",
    "QualityChecker",
]
