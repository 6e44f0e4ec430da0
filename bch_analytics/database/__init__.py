"""Database package for the analytics pipeline."""

from bch_analytics.database.manager import DatabaseManager
from bch_analytics.database.models import (
    Base, SourceTransaction, SourceOutput, SourceInput,
    StagingTransaction, AddressCurrentBalance
)

__all__ = [
    "DatabaseManager",
    "Base",
    "SourceTransaction",
    "SourceOutput",
    "SourceInput",
    "StagingTransaction",
    "AddressCurrentBalance",
]
