"""Change-driven price history, stored in SQLite.

A history row is appended only when a station's price for a fuel type
differs from the last value recorded for that (site_id, fuel_type)
pair. ``latest_fuel_prices`` holds that last value so the comparison
does not have to scan history.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import Path
from typing import ClassVar, Protocol, runtime_checkable

import aiosqlite

from fuelwatch.core.config import HistoryConfig
from fuelwatch.core.exceptions import StorageError
from fuelwatch.core.models import FuelStation, FuelType, HistoricalPricePoint

logger = logging.getLogger(__name__)


@runtime_checkable
class HistoryStore(Protocol):
    """Time-series store for historical fuel prices."""

    async def record_changes(
        self, stations: Sequence[FuelStation], recorded_at: datetime | None = None
    ) -> int: ...
    async def get_history(
        self, site_id: str, fuel_type: FuelType, since: datetime
    ) -> list[HistoricalPricePoint]: ...
    async def get_latest_price(
        self, site_id: str, fuel_type: FuelType
    ) -> float | None: ...
    async def initialize(self) -> None: ...
    async def close(self) -> None: ...
    async def health_check(self) -> bool: ...


class SqliteHistoryStore:
    """SQLite implementation of the history store.

    Uses aiosqlite for async access, WAL mode for concurrent reads,
    and a version-tracked migration system.
    """

    _MIGRATIONS: ClassVar[dict[int, tuple[str, list[str]]]] = {
        1: (
            "Initial schema",
            [
                """CREATE TABLE IF NOT EXISTS schema_version (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT DEFAULT (datetime('now'))
                )""",
                """CREATE TABLE IF NOT EXISTS historical_fuel_prices (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    site_id TEXT NOT NULL,
                    brand TEXT NOT NULL,
                    fuel_type TEXT NOT NULL,
                    price REAL NOT NULL,
                    recorded_at TEXT NOT NULL
                )""",
                """CREATE TABLE IF NOT EXISTS latest_fuel_prices (
                    site_id TEXT NOT NULL,
                    brand TEXT NOT NULL,
                    fuel_type TEXT NOT NULL,
                    price REAL NOT NULL,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY(site_id, fuel_type)
                )""",
                "CREATE INDEX IF NOT EXISTS idx_history_site_fuel_time "
                "ON historical_fuel_prices(site_id, fuel_type, recorded_at)",
            ],
        ),
    }

    def __init__(self, config: HistoryConfig) -> None:
        self._path = config.sqlite_path
        self._db: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection, enable WAL, run migrations."""
        try:
            if self._path != ":memory:":
                Path(self._path).parent.mkdir(parents=True, exist_ok=True)
            self._db = await aiosqlite.connect(self._path)
            self._db.row_factory = aiosqlite.Row
            await self._db.execute("PRAGMA journal_mode=WAL")
            current = await self._get_schema_version()
            await self._apply_migrations(current)
            await self._db.commit()
        except Exception as e:
            raise StorageError(
                f"Failed to initialize history store: {e}",
                context={"operation": "initialize", "path": self._path},
            ) from e

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None

    async def health_check(self) -> bool:
        if self._db is None:
            return False
        try:
            async with self._db.execute("SELECT 1") as cursor:
                row = await cursor.fetchone()
            return row is not None
        except Exception:
            return False

    # --- Schema Migration ---

    async def _get_schema_version(self) -> int:
        try:
            async with self._db.execute(
                "SELECT MAX(version) FROM schema_version"
            ) as cursor:
                row = await cursor.fetchone()
            return row[0] if row[0] is not None else 0
        except aiosqlite.OperationalError:
            return 0

    async def _apply_migrations(self, current_version: int) -> None:
        for version in sorted(self._MIGRATIONS.keys()):
            if version <= current_version:
                continue
            desc, statements = self._MIGRATIONS[version]
            logger.info("Applying history migration %d: %s", version, desc)
            for sql in statements:
                await self._db.execute(sql)
            await self._db.execute(
                "INSERT INTO schema_version (version) VALUES (?)", (version,)
            )

    # --- Recording ---

    async def record_changes(
        self,
        stations: Sequence[FuelStation],
        recorded_at: datetime | None = None,
    ) -> int:
        """Append history rows for prices that changed since last seen.

        Returns:
            Number of history rows appended.

        Raises:
            StorageError: If reading or writing fails. Nothing is
                committed in that case.
        """
        stamp = _as_utc(recorded_at or datetime.now(UTC)).isoformat()
        try:
            latest = await self._load_latest_prices()

            history_rows: list[tuple] = []
            for station in stations:
                for fuel_type, price in station.prices.items():
                    key = (station.site_id, fuel_type.value)
                    if latest.get(key) == price:
                        continue
                    latest[key] = price
                    history_rows.append(
                        (station.site_id, station.brand, fuel_type.value, price, stamp)
                    )

            if history_rows:
                await self._db.executemany(
                    """INSERT INTO historical_fuel_prices
                       (site_id, brand, fuel_type, price, recorded_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    history_rows,
                )
                await self._db.executemany(
                    """INSERT OR REPLACE INTO latest_fuel_prices
                       (site_id, brand, fuel_type, price, updated_at)
                       VALUES (?, ?, ?, ?, ?)""",
                    history_rows,
                )
                await self._db.commit()
        except Exception as e:
            if self._db is not None:
                await self._db.rollback()
            raise StorageError(
                f"Failed to record price changes: {e}",
                context={"operation": "insert", "table": "historical_fuel_prices"},
            ) from e

        if history_rows:
            logger.info("Recorded %d price changes", len(history_rows))
        return len(history_rows)

    async def _load_latest_prices(self) -> dict[tuple[str, str], float]:
        async with self._db.execute(
            "SELECT site_id, fuel_type, price FROM latest_fuel_prices"
        ) as cursor:
            rows = await cursor.fetchall()
        return {(r["site_id"], r["fuel_type"]): r["price"] for r in rows}

    # --- Queries ---

    async def get_history(
        self,
        site_id: str,
        fuel_type: FuelType,
        since: datetime,
    ) -> list[HistoricalPricePoint]:
        """Return points with ``recorded_at >= since``, oldest first."""
        try:
            async with self._db.execute(
                """SELECT site_id, fuel_type, price, recorded_at
                   FROM historical_fuel_prices
                   WHERE site_id = ? AND fuel_type = ? AND recorded_at >= ?
                   ORDER BY recorded_at ASC, id ASC""",
                (site_id, fuel_type.value, _as_utc(since).isoformat()),
            ) as cursor:
                rows = await cursor.fetchall()
            return [self._row_to_point(r) for r in rows]
        except Exception as e:
            raise StorageError(
                f"Failed to query price history: {e}",
                context={
                    "operation": "query",
                    "table": "historical_fuel_prices",
                    "site_id": site_id,
                },
            ) from e

    async def get_latest_price(
        self, site_id: str, fuel_type: FuelType
    ) -> float | None:
        try:
            async with self._db.execute(
                """SELECT price FROM latest_fuel_prices
                   WHERE site_id = ? AND fuel_type = ?""",
                (site_id, fuel_type.value),
            ) as cursor:
                row = await cursor.fetchone()
            return row["price"] if row is not None else None
        except Exception as e:
            raise StorageError(
                f"Failed to query latest price: {e}",
                context={"operation": "query", "table": "latest_fuel_prices"},
            ) from e

    @staticmethod
    def _row_to_point(row: aiosqlite.Row) -> HistoricalPricePoint:
        return HistoricalPricePoint(
            site_id=row["site_id"],
            fuel_type=FuelType(row["fuel_type"]),
            price=row["price"],
            recorded_at=datetime.fromisoformat(row["recorded_at"]),
        )


def _as_utc(value: datetime) -> datetime:
    # Stored stamps are UTC ISO strings; compare like with like.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
