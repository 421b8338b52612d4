"""Derived analytics over a station list: regions, averages, rankings."""

from fuelwatch.analytics.geo import haversine_km, mappable_stations, nearby_stations
from fuelwatch.analytics.regions import (
    OTHER_REGION,
    POSTCODE_REGIONS,
    postcode_area,
    region_for_postcode,
)
from fuelwatch.analytics.stats import (
    cheapest_by_region,
    cheapest_national,
    national_average,
    price_summary,
    top_n_cheapest,
)

__all__ = [
    "OTHER_REGION",
    "POSTCODE_REGIONS",
    "cheapest_by_region",
    "cheapest_national",
    "haversine_km",
    "mappable_stations",
    "national_average",
    "nearby_stations",
    "postcode_area",
    "price_summary",
    "region_for_postcode",
    "top_n_cheapest",
]
