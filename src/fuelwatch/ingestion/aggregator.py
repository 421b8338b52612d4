"""Concurrent fan-out fetch across every retailer feed."""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable, Sequence

import httpx

from fuelwatch.core.config import FetchConfig
from fuelwatch.core.exceptions import SourceError, SourceFetchError, SourceFormatError
from fuelwatch.core.models import (
    AggregationResult,
    FuelSource,
    FuelStation,
    SourceReport,
    SourceResult,
)
from fuelwatch.core.timestamps import latest_timestamp, utc_now_iso
from fuelwatch.sources.adapter import FeedAdapter, StationAdapter

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[float], None]


class Aggregator:
    """Fetches all configured sources in parallel and merges the results.

    One aggregation pass:
    - requests every source concurrently (all sources are equal weight)
    - bounds each request by ``timeout_seconds``; a slow source fails alone
    - logs and skips any source that errors; no retries within a pass
    - waits for every source to settle before merging (join, not race)

    Use via ``async with Aggregator(config) as aggregator:`` or call
    ``close()`` when done. A client passed in by the caller is left open.
    """

    def __init__(
        self,
        config: FetchConfig,
        adapter: StationAdapter | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._sources: tuple[FuelSource, ...] = tuple(config.sources)
        self._adapter = adapter or FeedAdapter()
        self._owns_client = client is None
        self._client: httpx.AsyncClient | None = client

    async def __aenter__(self) -> Aggregator:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    def _http(self) -> httpx.AsyncClient:
        """The shared client, created on first use and again after close()."""
        if self._client is None or (self._owns_client and self._client.is_closed):
            self._client = httpx.AsyncClient(
                headers={
                    "User-Agent": self._config.user_agent,
                    "Accept": "application/json",
                    "Accept-Language": "en-GB,en;q=0.9",
                },
                timeout=httpx.Timeout(self._config.timeout_seconds),
                follow_redirects=True,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client if this aggregator created it."""
        if self._owns_client and self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def sources(self) -> tuple[FuelSource, ...]:
        return self._sources

    async def aggregate(
        self, on_progress: ProgressCallback | None = None
    ) -> AggregationResult:
        """Run one aggregation pass.

        Args:
            on_progress: Called with ``completed / total`` as each source
                settles. Advisory only; exceptions it raises are logged.

        Returns:
            AggregationResult with stations in source completion order,
            de-duplicated by site_id (first seen wins), and the freshest
            parseable source timestamp (or the completion time).
        """
        total = len(self._sources)
        tasks = [asyncio.create_task(self._fetch_source(s)) for s in self._sources]

        stations: list[FuelStation] = []
        seen: set[str] = set()
        feed_timestamps: list[str | None] = []
        reports: list[SourceReport] = []
        duplicates = 0

        for completed, next_done in enumerate(asyncio.as_completed(tasks), start=1):
            report, result = await next_done
            reports.append(report)
            if result is not None:
                feed_timestamps.append(result.last_updated)
                for station in result.stations:
                    if station.site_id in seen:
                        duplicates += 1
                        continue
                    seen.add(station.site_id)
                    stations.append(station)
            _notify(on_progress, completed / total if total else 1.0)

        last_updated = latest_timestamp(feed_timestamps) or utc_now_iso()

        failed = [r.brand for r in reports if not r.ok]
        logger.info(
            "Aggregated %d stations from %d/%d sources%s",
            len(stations),
            total - len(failed),
            total,
            f" (failed: {', '.join(failed)})" if failed else "",
        )
        if duplicates:
            logger.debug("Dropped %d duplicate site_ids", duplicates)

        return AggregationResult(
            stations=stations,
            last_updated=last_updated,
            reports=reports,
        )

    async def _fetch_source(
        self, source: FuelSource
    ) -> tuple[SourceReport, SourceResult | None]:
        """Fetch and normalize one source. Never raises."""
        started = time.monotonic()
        try:
            result = await asyncio.wait_for(
                self._fetch_and_normalize(source),
                timeout=self._config.timeout_seconds,
            )
        except TimeoutError:
            elapsed = time.monotonic() - started
            logger.warning(
                "Timed out fetching %s after %.1fs", source.brand, elapsed
            )
            return (
                SourceReport(
                    brand=source.brand,
                    ok=False,
                    error=f"timeout after {self._config.timeout_seconds}s",
                    elapsed_seconds=elapsed,
                ),
                None,
            )
        except SourceError as e:
            elapsed = time.monotonic() - started
            logger.warning("Skipping %s: %s", source.brand, e)
            return (
                SourceReport(
                    brand=source.brand,
                    ok=False,
                    error=str(e),
                    elapsed_seconds=elapsed,
                ),
                None,
            )
        except Exception as e:
            elapsed = time.monotonic() - started
            logger.exception("Unexpected error normalizing %s", source.brand)
            return (
                SourceReport(
                    brand=source.brand,
                    ok=False,
                    error=f"{type(e).__name__}: {e}",
                    elapsed_seconds=elapsed,
                ),
                None,
            )

        elapsed = time.monotonic() - started
        logger.debug(
            "Fetched %d stations from %s in %.2fs",
            len(result.stations), source.brand, elapsed,
        )
        return (
            SourceReport(
                brand=source.brand,
                ok=True,
                station_count=len(result.stations),
                elapsed_seconds=elapsed,
            ),
            result,
        )

    async def _fetch_and_normalize(self, source: FuelSource) -> SourceResult:
        """GET one feed and run it through the adapter.

        Raises:
            SourceFetchError: Network error or non-200 response.
            SourceFormatError: Body is not JSON or not feed-shaped.
        """
        try:
            response = await self._http().get(source.url)
        except httpx.TimeoutException as e:
            raise SourceFetchError(
                f"Request to {source.brand} timed out",
                context={"brand": source.brand, "url": source.url,
                         "timeout": self._config.timeout_seconds},
            ) from e
        except httpx.HTTPError as e:
            raise SourceFetchError(
                f"Request to {source.brand} failed: {e}",
                context={"brand": source.brand, "url": source.url},
            ) from e

        if response.status_code != 200:
            raise SourceFetchError(
                f"HTTP {response.status_code} from {source.brand}",
                context={"brand": source.brand, "url": source.url,
                         "status_code": response.status_code},
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise SourceFormatError(
                f"{source.brand} returned malformed JSON",
                context={"brand": source.brand, "url": source.url,
                         "reason": "invalid_json"},
            ) from e

        return self._adapter.normalize(payload, source)


def _notify(callback: ProgressCallback | None, fraction: float) -> None:
    if callback is None:
        return
    try:
        callback(fraction)
    except Exception:
        logger.exception("Progress callback raised; ignoring")


async def aggregate_sources(
    sources: Sequence[FuelSource],
    config: FetchConfig | None = None,
    on_progress: ProgressCallback | None = None,
) -> AggregationResult:
    """One-shot helper: aggregate an ad-hoc list of sources."""
    base = config or FetchConfig()
    fetch_config = base.model_copy(update={"sources": list(sources)})
    async with Aggregator(fetch_config) as aggregator:
        return await aggregator.aggregate(on_progress=on_progress)
