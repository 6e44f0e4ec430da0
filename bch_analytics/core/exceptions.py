"""Errors raised by the analytics pipeline."""

from typing import List, Optional


class AnalyticsError(Exception):
    """Base class for pipeline errors."""


class ContractViolationError(AnalyticsError):
    """One or more quality checks failed on a transform output.
    
    Fatal: the run is aborted before any target table is replaced.
    """
    
    def __init__(self, message: str, failed_checks: Optional[List] = None):
        super().__init__(message)
        self.failed_checks = failed_checks or []


class SourceValidationError(ContractViolationError):
    """Source checks failed while running at error severity."""


class BalanceOverflowError(AnalyticsError):
    """An aggregated balance does not fit the target integer column."""
    
    def __init__(self, address: str, balance_sats: int, limit: int):
        super().__init__(
            f"Balance of {address} ({balance_sats} sats) exceeds limit of {limit} sats"
        )
        self.address = address
        self.balance_sats = balance_sats
        self.limit = limit
