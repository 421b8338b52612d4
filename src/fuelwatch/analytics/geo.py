"""Distance and map helpers."""

from __future__ import annotations

import math
from collections.abc import Iterable

from fuelwatch.core.models import FuelStation, FuelType, RankedStation

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    dlat = lat2_rad - lat1_rad
    dlon = math.radians(lon2 - lon1)

    a = math.sin(dlat / 2) ** 2 + math.cos(lat1_rad) * math.cos(lat2_rad) * math.sin(dlon / 2) ** 2
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def mappable_stations(stations: Iterable[FuelStation]) -> list[FuelStation]:
    """Stations whose location falls inside the UK bounding box."""
    return [s for s in stations if s.has_valid_location]


def nearby_stations(
    stations: Iterable[FuelStation],
    latitude: float,
    longitude: float,
    radius_km: float,
    fuel_type: FuelType,
    limit: int = 10,
) -> list[RankedStation]:
    """Cheapest stations selling ``fuel_type`` within ``radius_km``.

    Sorted by price, then distance. Stations without a mappable location
    or without a price for the fuel type are skipped.
    """
    ranked: list[RankedStation] = []
    for station in mappable_stations(stations):
        price = station.price(fuel_type)
        if price is None:
            continue
        distance = haversine_km(
            latitude, longitude, station.location.latitude, station.location.longitude
        )
        if distance > radius_km:
            continue
        ranked.append(RankedStation(station=station, price=price, distance_km=distance))

    ranked.sort(key=lambda r: (r.price, r.distance_km))
    return ranked[: max(limit, 0)]
