"""Time utility functions for the analytics pipeline."""

from datetime import date, datetime, timedelta, timezone
from typing import Optional


def to_utc(timestamp: datetime) -> datetime:
    """
    Convert a timestamp to an aware UTC datetime.
    
    Naive timestamps are taken to already be in UTC, which is how the
    source dataset stores block times.
    """
    if timestamp.tzinfo is None:
        return timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc)


def window_start(max_timestamp: Optional[datetime], days: int) -> Optional[datetime]:
    """
    Get the inclusive lower bound of a trailing window.
    
    Args:
        max_timestamp: Window anchor (latest observed timestamp)
        days: Window length in days
        
    Returns:
        ``max_timestamp - days``, or None when there is no anchor
    """
    if max_timestamp is None:
        return None
    return to_utc(max_timestamp) - timedelta(days=days)


def partition_day(timestamp: datetime) -> date:
    """Get the UTC calendar day a timestamp falls in."""
    return to_utc(timestamp).date()
