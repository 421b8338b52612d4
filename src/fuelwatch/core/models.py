"""Pydantic data models: the system's type contracts."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field, field_validator

# --- Type Aliases ---

SiteId = str
Brand = str
RegionName = str

# --- Constants ---

# Rough bounding box of Great Britain and Northern Ireland.
UK_MIN_LONGITUDE = -8.65
UK_MAX_LONGITUDE = 1.76
UK_MIN_LATITUDE = 49.84
UK_MAX_LATITUDE = 60.86

# --- Enumerations ---


class FuelType(StrEnum):
    """Fuel grades published by UK retailer feeds."""

    E10 = "E10"  # regular unleaded
    B7 = "B7"  # diesel
    E5 = "E5"  # super unleaded
    SDV = "SDV"  # super diesel


# --- Source Models ---


class FuelSource(BaseModel):
    """One retailer feed: where to fetch it and how to namespace its IDs."""

    model_config = ConfigDict(frozen=True)

    brand: Brand
    url: str
    prefix: str

    @field_validator("url")
    @classmethod
    def url_must_be_http(cls, v: str) -> str:
        if not v.startswith(("https://", "http://")):
            raise ValueError(f"source url must be http(s), got: {v!r}")
        return v

    @field_validator("prefix")
    @classmethod
    def prefix_is_slug(cls, v: str) -> str:
        v = v.strip().lower()
        if not v or not v.replace("_", "").isalnum():
            raise ValueError(f"prefix must be a non-empty alphanumeric slug, got: {v!r}")
        return v


# --- Station Models ---


class Location(BaseModel):
    """Geographic position in decimal degrees."""

    model_config = ConfigDict(frozen=True)

    latitude: float
    longitude: float

    @property
    def in_uk_bounds(self) -> bool:
        """True when the point falls inside the UK bounding box."""
        return (
            UK_MIN_LONGITUDE <= self.longitude <= UK_MAX_LONGITUDE
            and UK_MIN_LATITUDE <= self.latitude <= UK_MAX_LATITUDE
        )


class FuelStation(BaseModel):
    """A single forecourt as normalized from any retailer feed.

    Prices are pence per litre exactly as published, so a feed value of
    135.9 stays 135.9 rather than being rounded to whole pence.
    """

    model_config = ConfigDict(frozen=True)

    site_id: SiteId
    brand: Brand
    address: str = ""
    postcode: str = ""
    location: Location | None = None
    prices: dict[FuelType, float] = {}
    last_updated: str | None = None

    @field_validator("site_id")
    @classmethod
    def site_id_not_empty(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("site_id must not be empty")
        return v

    @field_validator("prices")
    @classmethod
    def prices_non_negative(cls, v: dict[FuelType, float]) -> dict[FuelType, float]:
        for fuel_type, price in v.items():
            if price < 0:
                raise ValueError(f"price for {fuel_type} must be >= 0, got {price}")
        return v

    def price(self, fuel_type: FuelType) -> float | None:
        """Return the reported price for a fuel type, or None if absent."""
        return self.prices.get(fuel_type)

    @property
    def has_valid_location(self) -> bool:
        return self.location is not None and self.location.in_uk_bounds


class SourceResult(BaseModel):
    """Normalized output of one retailer feed."""

    model_config = ConfigDict(frozen=True)

    stations: list[FuelStation]
    last_updated: str | None = None


class SourceReport(BaseModel):
    """Outcome of fetching one source during an aggregation pass."""

    model_config = ConfigDict(frozen=True)

    brand: Brand
    ok: bool
    station_count: int = 0
    error: str | None = None
    elapsed_seconds: float = 0.0


class AggregationResult(BaseModel):
    """Merged output of one aggregation pass across all sources."""

    model_config = ConfigDict(frozen=True)

    stations: list[FuelStation]
    last_updated: str
    reports: list[SourceReport] = []

    @property
    def failed_sources(self) -> list[Brand]:
        return [r.brand for r in self.reports if not r.ok]

    @property
    def all_failed(self) -> bool:
        """Every source was attempted and none succeeded."""
        return bool(self.reports) and not any(r.ok for r in self.reports)


# --- Cache Models ---


class CacheEntry(BaseModel):
    """The latest aggregated station list plus its fetch metadata."""

    model_config = ConfigDict(frozen=True)

    data: list[FuelStation]
    fetched_at: float
    source_last_updated: str | None = None

    def is_valid(self, now: float, ttl_seconds: float) -> bool:
        """True while the entry is younger than the TTL."""
        return now - self.fetched_at < ttl_seconds


# --- History Models ---


class HistoricalPricePoint(BaseModel):
    """One recorded price change for a (site, fuel type) pair."""

    model_config = ConfigDict(frozen=True)

    site_id: SiteId
    fuel_type: FuelType
    price: float
    recorded_at: datetime

    @field_validator("price")
    @classmethod
    def price_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"price must be >= 0, got {v}")
        return v


class PricePoint(BaseModel):
    """A price at a point in time, as plotted by history charts."""

    model_config = ConfigDict(frozen=True)

    price: float
    recorded_at: datetime


class PriceHistory(BaseModel):
    """Price history for one station, bucketed by fuel type.

    All four buckets are always present, possibly empty.
    """

    model_config = ConfigDict(frozen=True)

    e10: list[PricePoint] = Field(default_factory=list)
    b7: list[PricePoint] = Field(default_factory=list)
    e5: list[PricePoint] = Field(default_factory=list)
    sdv: list[PricePoint] = Field(default_factory=list)

    @classmethod
    def empty(cls) -> PriceHistory:
        return cls()

    def bucket(self, fuel_type: FuelType) -> list[PricePoint]:
        """Return the bucket for a fuel type."""
        return getattr(self, fuel_type.value.lower())

    def is_empty(self) -> bool:
        return not (self.e10 or self.b7 or self.e5 or self.sdv)


# --- Analytics Models ---


class RegionPrice(BaseModel):
    """Cheapest price per fuel type within one postcode region."""

    model_config = ConfigDict(frozen=True)

    region: RegionName
    cheapest: dict[FuelType, float]
    station_count: int


class RankedStation(BaseModel):
    """A station paired with the price (and distance) it was ranked by."""

    model_config = ConfigDict(frozen=True)

    station: FuelStation
    price: float
    distance_km: float | None = None


class PriceSummary(BaseModel):
    """National headline figures per fuel type."""

    model_config = ConfigDict(frozen=True)

    station_count: int
    reporting: dict[FuelType, int]
    average: dict[FuelType, int | None]
    cheapest: dict[FuelType, RankedStation | None]
