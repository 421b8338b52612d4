"""Persistence: the aggregated-result cache and the price-history store."""

from fuelwatch.storage.cache import CACHE_KEY, CacheStore, SqliteCacheStore
from fuelwatch.storage.history import HistoryStore, SqliteHistoryStore

__all__ = [
    "CACHE_KEY",
    "CacheStore",
    "HistoryStore",
    "SqliteCacheStore",
    "SqliteHistoryStore",
]
