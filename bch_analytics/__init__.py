"""
Bitcoin Cash Analytics Pipeline

Derives a windowed, deduplicated staging table of transactions and a
data-mart of current per-address balances (UTXO based) from the public
Bitcoin Cash dataset.
"""

__version__ = "1.0.0"
__author__ = "Bitcoin Data Engineering Team"
__description__ = "Staging and address-balance transforms for Bitcoin Cash on-chain data"

from bch_analytics.core.pipeline import AnalyticsPipeline
from bch_analytics.core.staging import StagingTransform
from bch_analytics.core.balance import BalanceTransform
from bch_analytics.models.config import PipelineConfig

__all__ = [
    "AnalyticsPipeline",
    "StagingTransform",
    "BalanceTransform",
    "PipelineConfig",
]
