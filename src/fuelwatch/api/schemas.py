"""API-specific request/response schemas (Pydantic v2)."""

from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel

from fuelwatch.core.models import FuelStation, FuelType, RankedStation


# -- Error --


class ErrorResponse(BaseModel):
    """Standard error envelope."""

    error: str
    detail: str | None = None


# -- Stations --


class StationResponse(BaseModel):
    """Single station in API response format."""

    site_id: str
    brand: str
    address: str
    postcode: str
    latitude: float | None = None
    longitude: float | None = None
    prices: dict[FuelType, float]
    last_updated: str | None = None

    @classmethod
    def from_station(cls, station: FuelStation) -> StationResponse:
        location = station.location
        return cls(
            site_id=station.site_id,
            brand=station.brand,
            address=station.address,
            postcode=station.postcode,
            latitude=location.latitude if location else None,
            longitude=location.longitude if location else None,
            prices=dict(station.prices),
            last_updated=station.last_updated,
        )


class StationListResponse(BaseModel):
    """Current station list with its freshness metadata."""

    total: int
    last_updated: str | None = None
    fetched_at: datetime | None = None
    items: list[StationResponse]


class LastUpdatedResponse(BaseModel):
    last_updated: str | None = None
    fetched_at: datetime | None = None
    is_fetching: bool


class PricePointResponse(BaseModel):
    price: float
    recorded_at: datetime


class StationHistoryResponse(BaseModel):
    """Price history for one station, one list per fuel type."""

    site_id: str
    days: int
    history: dict[FuelType, list[PricePointResponse]]


# -- Stats --


class RankedStationResponse(BaseModel):
    station: StationResponse
    price: float
    distance_km: float | None = None

    @classmethod
    def from_ranked(cls, ranked: RankedStation) -> RankedStationResponse:
        return cls(
            station=StationResponse.from_station(ranked.station),
            price=ranked.price,
            distance_km=ranked.distance_km,
        )


class SummaryResponse(BaseModel):
    """National headline figures per fuel type."""

    station_count: int
    last_updated: str | None = None
    reporting: dict[FuelType, int]
    average: dict[FuelType, int | None]
    cheapest: dict[FuelType, RankedStationResponse | None]


class RegionResponse(BaseModel):
    region: str
    station_count: int
    cheapest: dict[FuelType, float]


# -- Jobs --


class JobResponse(BaseModel):
    """Response for async refresh job submission."""

    job_id: str
    status: str
    created_at: datetime
    message: str


class JobStatusResponse(BaseModel):
    """Response for job status polling."""

    job_id: str
    status: str
    created_at: datetime
    completed_at: datetime | None = None
    result: dict | None = None
    error: str | None = None


# -- Health --


class HealthResponse(BaseModel):
    """Response for GET /api/health."""

    status: str = "ok"
    version: str
    cached_stations: int
    last_updated: str | None = None
    is_fetching: bool
    history_enabled: bool
    next_refresh_at: datetime | None = None
