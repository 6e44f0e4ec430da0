"""Utility functions for the analytics pipeline."""

from bch_analytics.utils.time_utils import (
    to_utc,
    window_start,
    partition_day
)

__all__ = [
    "to_utc",
    "window_start",
    "partition_day",
]
