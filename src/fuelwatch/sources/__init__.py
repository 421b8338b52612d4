"""Retailer feed table and the normalizer that reads it."""

from fuelwatch.sources.adapter import FeedAdapter, StationAdapter
from fuelwatch.sources.registry import DEFAULT_SOURCES, find_source

__all__ = [
    "DEFAULT_SOURCES",
    "FeedAdapter",
    "StationAdapter",
    "find_source",
]
