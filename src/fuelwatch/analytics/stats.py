"""National and regional price statistics.

Every function here is pure: same station list in, same answer out.
Averages are whole pence, rounded half-up (137.5 -> 138).
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Sequence

from fuelwatch.analytics.regions import OTHER_REGION, region_for_postcode
from fuelwatch.core.models import (
    FuelStation,
    FuelType,
    PriceSummary,
    RankedStation,
    RegionName,
    RegionPrice,
)


def _wanted(fuel_types: Iterable[FuelType] | None) -> list[FuelType]:
    return list(fuel_types) if fuel_types is not None else list(FuelType)


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def cheapest_by_region(
    stations: Iterable[FuelStation],
    fuel_types: Iterable[FuelType] | None = None,
) -> list[RegionPrice]:
    """Lowest price per fuel type in each named region.

    Stations in OTHER_REGION are left out, as are regions where no station
    reports any of the requested fuel types. Output is sorted by region.
    """
    wanted = _wanted(fuel_types)
    cheapest: dict[RegionName, dict[FuelType, float]] = {}
    counts: dict[RegionName, int] = {}

    for station in stations:
        region = region_for_postcode(station.postcode)
        if region == OTHER_REGION:
            continue
        reported = False
        for ft in wanted:
            price = station.price(ft)
            if price is None:
                continue
            reported = True
            bucket = cheapest.setdefault(region, {})
            if ft not in bucket or price < bucket[ft]:
                bucket[ft] = price
        if reported:
            counts[region] = counts.get(region, 0) + 1

    return [
        RegionPrice(region=region, cheapest=cheapest[region], station_count=counts[region])
        for region in sorted(cheapest)
    ]


def national_average(
    stations: Iterable[FuelStation],
    fuel_types: Iterable[FuelType] | None = None,
) -> dict[FuelType, int | None]:
    """Mean reported price per fuel type; None where nobody reports it."""
    wanted = _wanted(fuel_types)
    totals = {ft: 0.0 for ft in wanted}
    counts = {ft: 0 for ft in wanted}

    for station in stations:
        for ft in wanted:
            price = station.price(ft)
            if price is not None:
                totals[ft] += price
                counts[ft] += 1

    return {
        ft: _round_half_up(totals[ft] / counts[ft]) if counts[ft] else None
        for ft in wanted
    }


def top_n_cheapest(
    stations: Iterable[FuelStation],
    fuel_type: FuelType,
    n: int,
) -> list[RankedStation]:
    """The ``n`` cheapest stations for a fuel type; ties keep input order."""
    ranked = [
        RankedStation(station=s, price=price)
        for s in stations
        if (price := s.price(fuel_type)) is not None
    ]
    ranked.sort(key=lambda r: r.price)
    return ranked[: max(n, 0)]


def cheapest_national(
    stations: Iterable[FuelStation],
    fuel_type: FuelType,
) -> RankedStation | None:
    top = top_n_cheapest(stations, fuel_type, 1)
    return top[0] if top else None


def price_summary(stations: Sequence[FuelStation]) -> PriceSummary:
    """Headline numbers for dashboards, the CLI and the API."""
    return PriceSummary(
        station_count=len(stations),
        reporting={
            ft: sum(1 for s in stations if s.price(ft) is not None) for ft in FuelType
        },
        average=national_average(stations),
        cheapest={ft: cheapest_national(stations, ft) for ft in FuelType},
    )
