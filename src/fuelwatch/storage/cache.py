"""Durable cache for the latest aggregation result.

The whole station list lives in one keyed record, serialized as text::

    {"data": [FuelStation, ...], "timestamp": <epoch-millis>, "lastUpdated": str | null}

A record that cannot be decoded is a cache miss, never an error: the
service simply re-aggregates and overwrites it.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Protocol, runtime_checkable

import aiosqlite
from pydantic import ValidationError

from fuelwatch.core.config import CacheConfig
from fuelwatch.core.exceptions import StorageError
from fuelwatch.core.models import CacheEntry, FuelStation

logger = logging.getLogger(__name__)

CACHE_KEY = "fuel_prices"

Clock = Callable[[], float]


@runtime_checkable
class CacheStore(Protocol):
    """Persistence interface for the aggregated station list."""

    async def read(self) -> CacheEntry | None: ...
    async def write(
        self, stations: Sequence[FuelStation], source_last_updated: str | None
    ) -> CacheEntry: ...
    def is_valid(self, entry: CacheEntry) -> bool: ...
    async def clear(self) -> None: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...


class SqliteCacheStore:
    """SQLite implementation of the cache store.

    Uses aiosqlite for async access. The record is replaced with a single
    ``INSERT OR REPLACE`` per write, so readers see either the previous
    entry or the new one, never a partial list.
    """

    def __init__(
        self,
        config: CacheConfig,
        clock: Clock = time.time,
        key: str = CACHE_KEY,
    ) -> None:
        self._path = config.sqlite_path
        self._ttl = config.ttl_seconds
        self._clock = clock
        self._key = key
        self._db: aiosqlite.Connection | None = None

    @property
    def ttl_seconds(self) -> float:
        return self._ttl

    async def initialize(self) -> None:
        """Open connection and create the key/value table."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            await self._db.execute(
                """CREATE TABLE IF NOT EXISTS kv_cache (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT DEFAULT (datetime('now'))
                )"""
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize cache store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def read(self) -> CacheEntry | None:
        """Return the stored entry, or None on miss or undecodable data.

        Validity is not checked here; see ``is_valid``.

        Raises:
            StorageError: If the database itself cannot be queried.
        """
        try:
            async with self._db.execute(
                "SELECT value FROM kv_cache WHERE key = ?", (self._key,)
            ) as cursor:
                row = await cursor.fetchone()
        except Exception as e:
            raise StorageError(
                f"Failed to read cache: {e}",
                context={"operation": "read", "table": "kv_cache"},
            ) from e

        if row is None:
            return None
        return self._decode(row["value"])

    async def write(
        self,
        stations: Sequence[FuelStation],
        source_last_updated: str | None,
    ) -> CacheEntry:
        """Persist a new entry stamped with ``fetched_at = now``.

        Raises:
            StorageError: If the write or commit fails. The previous
                record is left in place.
        """
        fetched_ms = int(round(self._clock() * 1000))
        entry = CacheEntry(
            data=list(stations),
            fetched_at=fetched_ms / 1000,
            source_last_updated=source_last_updated,
        )
        payload = json.dumps(
            {
                "data": [s.model_dump(mode="json") for s in entry.data],
                "timestamp": fetched_ms,
                "lastUpdated": source_last_updated,
            }
        )
        try:
            await self._db.execute(
                """INSERT OR REPLACE INTO kv_cache (key, value, updated_at)
                   VALUES (?, ?, datetime('now'))""",
                (self._key, payload),
            )
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to write cache: {e}",
                context={"operation": "write", "table": "kv_cache"},
            ) from e

        logger.debug("Cached %d stations", len(entry.data))
        return entry

    def is_valid(self, entry: CacheEntry) -> bool:
        """True while ``now - entry.fetched_at < ttl``."""
        return entry.is_valid(self._clock(), self._ttl)

    async def clear(self) -> None:
        try:
            await self._db.execute("DELETE FROM kv_cache WHERE key = ?", (self._key,))
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to clear cache: {e}",
                context={"operation": "delete", "table": "kv_cache"},
            ) from e

    # --- Serialization ---

    def _decode(self, text: str) -> CacheEntry | None:
        try:
            raw = json.loads(text)
            if not isinstance(raw, dict):
                raise ValueError(f"expected object, got {type(raw).__name__}")
            timestamp = raw["timestamp"]
            if isinstance(timestamp, bool) or not isinstance(timestamp, (int, float)):
                raise ValueError(f"timestamp must be numeric, got {timestamp!r}")
            return CacheEntry(
                data=raw["data"],
                fetched_at=timestamp / 1000,
                source_last_updated=raw.get("lastUpdated"),
            )
        except (ValueError, KeyError, TypeError, ValidationError) as e:
            logger.warning("Discarding unreadable cache record: %s", e)
            return None
