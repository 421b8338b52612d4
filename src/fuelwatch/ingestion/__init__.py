"""Retailer feed ingestion: concurrent fetch and merge."""

from fuelwatch.ingestion.aggregator import Aggregator, ProgressCallback, aggregate_sources

__all__ = [
    "Aggregator",
    "ProgressCallback",
    "aggregate_sources",
]
