"""FastAPI route definitions for the Fuelwatch API."""

from __future__ import annotations

from datetime import UTC, datetime

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Query

import fuelwatch
from fuelwatch.analytics import (
    cheapest_by_region,
    nearby_stations,
    price_summary,
    top_n_cheapest,
)
from fuelwatch.api.deps import RefreshJobs, get_config, get_jobs, get_service
from fuelwatch.api.schemas import (
    HealthResponse,
    JobResponse,
    JobStatusResponse,
    LastUpdatedResponse,
    PricePointResponse,
    RankedStationResponse,
    RegionResponse,
    StationHistoryResponse,
    StationListResponse,
    StationResponse,
    SummaryResponse,
)
from fuelwatch.core.config import FuelwatchConfig
from fuelwatch.core.models import FuelType
from fuelwatch.service.facade import PriceService

router = APIRouter()


# -- Health --


@router.get("/health", response_model=HealthResponse)
async def health_check(
    service: PriceService = Depends(get_service),
    config: FuelwatchConfig = Depends(get_config),
):
    """Service health and cache state. Never triggers a fetch."""
    return HealthResponse(
        status="ok",
        version=fuelwatch.__version__,
        cached_stations=len(service.cached_stations()),
        last_updated=service.get_last_updated(),
        is_fetching=service.is_fetching,
        history_enabled=config.history.enabled,
        next_refresh_at=service.scheduler.next_run_time(),
    )


# -- Prices --


@router.get("/prices", response_model=StationListResponse)
async def list_prices(
    force: bool = Query(False, description="Ignore the cache TTL and refresh now"),
    brand: str | None = Query(None, description="Filter by retailer brand"),
    fuel_type: FuelType | None = Query(None, description="Only stations selling this fuel"),
    service: PriceService = Depends(get_service),
):
    """Current station list, served from cache while it is fresh."""
    stations = await service.fetch_fuel_prices(force_refresh=force)

    if brand:
        wanted = brand.lower()
        stations = [s for s in stations if s.brand.lower() == wanted]
    if fuel_type is not None:
        stations = [s for s in stations if s.price(fuel_type) is not None]

    return StationListResponse(
        total=len(stations),
        last_updated=service.get_last_updated(),
        fetched_at=_fetched_at(service),
        items=[StationResponse.from_station(s) for s in stations],
    )


@router.get("/prices/last-updated", response_model=LastUpdatedResponse)
async def last_updated(service: PriceService = Depends(get_service)):
    """Freshness of the list currently being served."""
    return LastUpdatedResponse(
        last_updated=service.get_last_updated(),
        fetched_at=_fetched_at(service),
        is_fetching=service.is_fetching,
    )


# -- Stations --


@router.get("/stations/{site_id}", response_model=StationResponse)
async def get_station(
    site_id: str,
    service: PriceService = Depends(get_service),
):
    """Get one station by its namespaced ID."""
    stations = await service.fetch_fuel_prices()
    for station in stations:
        if station.site_id == site_id:
            return StationResponse.from_station(station)
    raise HTTPException(status_code=404, detail=f"Station '{site_id}' not found")


@router.get("/stations/{site_id}/history", response_model=StationHistoryResponse)
async def get_station_history(
    site_id: str,
    fuel_type: FuelType | None = Query(None),
    days: int | None = Query(None, ge=1, le=365),
    service: PriceService = Depends(get_service),
    config: FuelwatchConfig = Depends(get_config),
):
    """Recorded price changes for one station, oldest first."""
    window = days or config.history.default_days
    history = await service.get_historical_prices(site_id, fuel_type=fuel_type, days=window)
    return StationHistoryResponse(
        site_id=site_id,
        days=window,
        history={
            ft: [
                PricePointResponse(price=p.price, recorded_at=p.recorded_at)
                for p in history.bucket(ft)
            ]
            for ft in FuelType
        },
    )


# -- Stats --


@router.get("/stats/summary", response_model=SummaryResponse)
async def stats_summary(service: PriceService = Depends(get_service)):
    """National averages, cheapest station and reporting counts per fuel."""
    stations = await service.fetch_fuel_prices()
    summary = price_summary(stations)
    return SummaryResponse(
        station_count=summary.station_count,
        last_updated=service.get_last_updated(),
        reporting=summary.reporting,
        average=summary.average,
        cheapest={
            ft: RankedStationResponse.from_ranked(r) if r is not None else None
            for ft, r in summary.cheapest.items()
        },
    )


@router.get("/stats/regions", response_model=list[RegionResponse])
async def stats_regions(
    fuel_type: FuelType | None = Query(None),
    service: PriceService = Depends(get_service),
):
    """Cheapest price per fuel type in each postcode region."""
    stations = await service.fetch_fuel_prices()
    fuel_types = [fuel_type] if fuel_type is not None else None
    return [
        RegionResponse(
            region=r.region,
            station_count=r.station_count,
            cheapest=r.cheapest,
        )
        for r in cheapest_by_region(stations, fuel_types)
    ]


@router.get("/stats/cheapest", response_model=list[RankedStationResponse])
async def stats_cheapest(
    fuel_type: FuelType = Query(FuelType.E10),
    limit: int = Query(10, ge=1, le=100),
    service: PriceService = Depends(get_service),
):
    """Cheapest stations nationally for one fuel type."""
    stations = await service.fetch_fuel_prices()
    return [
        RankedStationResponse.from_ranked(r)
        for r in top_n_cheapest(stations, fuel_type, limit)
    ]


@router.get("/stats/nearby", response_model=list[RankedStationResponse])
async def stats_nearby(
    lat: float = Query(..., ge=-90, le=90),
    lon: float = Query(..., ge=-180, le=180),
    radius_km: float = Query(10.0, gt=0, le=200),
    fuel_type: FuelType = Query(FuelType.E10),
    limit: int = Query(10, ge=1, le=100),
    service: PriceService = Depends(get_service),
):
    """Cheapest stations within a radius of a point."""
    stations = await service.fetch_fuel_prices()
    return [
        RankedStationResponse.from_ranked(r)
        for r in nearby_stations(stations, lat, lon, radius_km, fuel_type, limit)
    ]


# -- Refresh --


@router.post("/refresh", response_model=JobResponse, status_code=202)
async def trigger_refresh(
    background_tasks: BackgroundTasks,
    jobs: RefreshJobs = Depends(get_jobs),
    service: PriceService = Depends(get_service),
    config: FuelwatchConfig = Depends(get_config),
):
    """Queue a forced refresh across all sources; poll ``/jobs/{job_id}``."""
    job = jobs.submit()
    background_tasks.add_task(jobs.run, job, service)
    return JobResponse(
        job_id=job.job_id,
        status=job.status,
        created_at=job.created_at,
        message=f"Refresh queued for {len(config.fetch.sources)} sources",
    )


# -- Jobs --


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job_status(
    job_id: str,
    jobs: RefreshJobs = Depends(get_jobs),
):
    """Poll a refresh job."""
    job = jobs.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job '{job_id}' not found")

    return JobStatusResponse(
        job_id=job.job_id,
        status=job.status,
        created_at=job.created_at,
        completed_at=job.completed_at,
        result=job.result(),
        error=job.error,
    )


# -- Helpers --


def _fetched_at(service: PriceService) -> datetime | None:
    ts = service.get_last_fetch_time()
    return datetime.fromtimestamp(ts, tz=UTC) if ts is not None else None
