"""PriceService: the single entry point for current and historical prices.

State machine for ``fetch_fuel_prices``::

    IDLE  + valid cache, not forced  -> return cached list, stay IDLE
    IDLE  + forced or stale cache    -> FETCHING -> aggregate -> write cache
                                        -> return new list -> IDLE
    FETCHING + any call              -> return current cached list at once

The FETCHING flag is tested and set with no ``await`` in between, so on a
single event loop at most one aggregation is ever in flight. A caller that
arrives mid-refresh is handed the (possibly stale, possibly empty) list
rather than joining the refresh.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime, timedelta

from fuelwatch.core.config import ServiceConfig
from fuelwatch.core.exceptions import AggregationError, FuelwatchError
from fuelwatch.core.models import (
    AggregationResult,
    CacheEntry,
    FuelStation,
    FuelType,
    PriceHistory,
    PricePoint,
)
from fuelwatch.ingestion.aggregator import Aggregator, ProgressCallback
from fuelwatch.service.scheduler import RefreshScheduler
from fuelwatch.storage.cache import CacheStore
from fuelwatch.storage.history import HistoryStore

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class PriceService:
    """Facade over the aggregator, cache store and history store.

    Construct one per process (or per test) and drive it through
    ``start()``/``stop()``, or use it as an async context manager.

    Parameters
    ----------
    aggregator : Aggregator
        Performs the fan-out fetch.
    cache : CacheStore
        Durable storage for the latest aggregation.
    history : HistoryStore | None
        Time-series store. Without one, history queries return empty
        results and nothing is recorded.
    config : ServiceConfig
        Refresh interval for the background refresh.
    record_history : bool
        Record changed prices into ``history`` after each aggregation.
    clock : Callable[[], float]
        Epoch-seconds clock used for history windows.
    """

    def __init__(
        self,
        aggregator: Aggregator,
        cache: CacheStore,
        history: HistoryStore | None = None,
        config: ServiceConfig | None = None,
        record_history: bool = True,
        clock: Clock = time.time,
    ) -> None:
        self._aggregator = aggregator
        self._cache = cache
        self._history = history
        self._config = config or ServiceConfig()
        self._record_history = record_history
        self._clock = clock

        self._entry: CacheEntry | None = None
        self._fetching = False
        self._last_result: AggregationResult | None = None
        self._started = False
        self._scheduler = RefreshScheduler(
            self._scheduled_refresh,
            interval_seconds=self._config.refresh_interval_seconds,
        )

    async def __aenter__(self) -> PriceService:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    # --- Lifecycle ---

    async def start(self) -> None:
        """Open stores and begin periodic background refresh."""
        if self._started:
            return
        await self._cache.initialize()
        if self._history is not None:
            await self._history.initialize()
        self._scheduler.start()
        self._started = True
        logger.info("Price service started")

    async def stop(self) -> None:
        """Stop background refresh and release every resource."""
        self._scheduler.stop()
        await self._aggregator.close()
        await self._cache.close()
        if self._history is not None:
            await self._history.close()
        self._started = False
        logger.info("Price service stopped")

    # --- State ---

    @property
    def is_fetching(self) -> bool:
        return self._fetching

    @property
    def scheduler(self) -> RefreshScheduler:
        return self._scheduler

    @property
    def last_result(self) -> AggregationResult | None:
        """Most recent aggregation pass, including per-source reports."""
        return self._last_result

    def get_last_updated(self) -> str | None:
        """Freshness timestamp of the list currently being served."""
        return self._entry.source_last_updated if self._entry else None

    def get_last_fetch_time(self) -> float | None:
        """Epoch seconds at which the current list was captured."""
        return self._entry.fetched_at if self._entry else None

    def cached_stations(self) -> list[FuelStation]:
        return list(self._entry.data) if self._entry else []

    # --- Current Prices ---

    async def fetch_fuel_prices(
        self,
        on_progress: ProgressCallback | None = None,
        force_refresh: bool = False,
    ) -> list[FuelStation]:
        """Return the current station list, refreshing when needed.

        Args:
            on_progress: Receives ``completed / total`` sources during an
                aggregation pass. Not called when cache is served.
            force_refresh: Ignore TTL and aggregate now (unless a refresh
                is already in flight).

        Raises:
            StorageError: The cache could not be read or written.
            AggregationError: The aggregation pass itself failed, or every
                source failed. The previous list is kept in both cases.
        """
        if not force_refresh and self._entry is not None and self._cache.is_valid(self._entry):
            return self.cached_stations()

        if self._fetching:
            logger.debug("Refresh already in flight; serving cached list")
            return self.cached_stations()

        self._fetching = True
        try:
            if not force_refresh:
                persisted = await self._cache.read()
                if persisted is not None and self._cache.is_valid(persisted):
                    self._entry = persisted
                    logger.debug("Serving %d stations from persisted cache", len(persisted.data))
                    return self.cached_stations()

            result = await self._run_aggregation(on_progress)
            if result.all_failed:
                self._last_result = result
                raise AggregationError(
                    f"All {len(result.reports)} sources failed; keeping the previous list",
                    context={"stage": "aggregate", "failed_sources": result.failed_sources},
                )
            entry = await self._cache.write(result.stations, result.last_updated)
            self._entry = entry
            self._last_result = result

            await self._record(result)
            return self.cached_stations()
        finally:
            self._fetching = False

    async def _run_aggregation(
        self, on_progress: ProgressCallback | None
    ) -> AggregationResult:
        try:
            return await self._aggregator.aggregate(on_progress=on_progress)
        except FuelwatchError:
            raise
        except Exception as e:
            raise AggregationError(
                f"Aggregation pass failed: {e}",
                context={"stage": "aggregate"},
            ) from e

    async def _record(self, result: AggregationResult) -> None:
        """Record changed prices; history is best-effort."""
        if not self._record_history or self._history is None:
            return
        try:
            await self._history.record_changes(result.stations)
        except FuelwatchError as e:
            logger.warning("Could not record price history: %s", e)

    async def _scheduled_refresh(self) -> None:
        try:
            await self.fetch_fuel_prices(force_refresh=True)
        except FuelwatchError as e:
            logger.error("Scheduled refresh failed: %s", e)

    # --- History ---

    async def get_historical_prices(
        self,
        site_id: str,
        fuel_type: FuelType | None = None,
        days: int = 30,
    ) -> PriceHistory:
        """Price history for one station over the last ``days`` days.

        Args:
            site_id: Namespaced station ID (``"asda-1234"``).
            fuel_type: Fill only this bucket; ``None`` fills all four.
            days: Window length; points with ``recorded_at >= now - days``.

        Returns:
            PriceHistory with all four buckets present, oldest point first.
            Any failure yields an empty PriceHistory instead of raising.
        """
        if self._history is None:
            return PriceHistory.empty()

        since = datetime.fromtimestamp(self._clock(), tz=UTC) - timedelta(days=days)
        wanted = [fuel_type] if fuel_type is not None else list(FuelType)

        buckets: dict[str, list[PricePoint]] = {}
        try:
            for ft in wanted:
                points = await self._history.get_history(site_id, ft, since)
                buckets[ft.value.lower()] = [
                    PricePoint(price=p.price, recorded_at=p.recorded_at) for p in points
                ]
        except Exception as e:
            logger.warning("History query failed for %s: %s", site_id, e)
            return PriceHistory.empty()

        return PriceHistory(**buckets)
