"""Feed adapters: turn a raw retailer payload into normalized stations.

Architecture
------------
Adapters are pure descriptions of how one feed maps onto the common
``FuelStation`` shape:

    raw JSON -> StationAdapter.normalize(raw, source) -> SourceResult

They never fetch, cache or retry; that is the aggregator's job. All
observed retailer feeds share one schema, so a single ``FeedAdapter``
serves every row of the source table. A retailer that diverges gets its
own class implementing ``StationAdapter``.
"""

from __future__ import annotations

import logging
import math
from typing import Any, Protocol, runtime_checkable

from pydantic import ValidationError

from fuelwatch.core.exceptions import SourceFormatError
from fuelwatch.core.models import (
    FuelSource,
    FuelStation,
    FuelType,
    Location,
    SourceResult,
)

logger = logging.getLogger(__name__)

_FUEL_CODES: dict[str, FuelType] = {ft.value: ft for ft in FuelType}


@runtime_checkable
class StationAdapter(Protocol):
    """Transforms a decoded feed payload into a SourceResult.

    Parameters
    ----------
    raw : Any
        The decoded JSON body of the feed.
    source : FuelSource
        The table row the payload was fetched for.

    Raises
    ------
    SourceFormatError
        If the payload is not shaped like a station feed at all.
    """

    def normalize(self, raw: Any, source: FuelSource) -> SourceResult: ...


class FeedAdapter:
    """Generic normalizer for the shared UK retailer feed schema.

    Expected shape::

        {"last_updated": "...", "stations": [
            {"site_id": "...", "address": "...", "postcode": "...",
             "location": {"latitude": 51.5, "longitude": -0.1},
             "prices": {"E10": 135.9, "B7": 142.9}}
        ]}

    Only ``site_id`` is required per record. Everything else is optional
    and unknown fields are ignored.
    """

    def normalize(self, raw: Any, source: FuelSource) -> SourceResult:
        if not isinstance(raw, dict):
            raise SourceFormatError(
                f"{source.brand} payload is not a JSON object",
                context={"brand": source.brand, "url": source.url, "reason": "not_object"},
            )
        records = raw.get("stations")
        if not isinstance(records, list):
            raise SourceFormatError(
                f"{source.brand} payload has no stations list",
                context={"brand": source.brand, "url": source.url, "reason": "no_stations"},
            )

        last_updated = _text_or_none(raw.get("last_updated"))

        stations: list[FuelStation] = []
        skipped = 0
        for record in records:
            station = self._normalize_record(record, source, last_updated)
            if station is None:
                skipped += 1
                continue
            stations.append(station)

        if skipped:
            logger.debug("%s: skipped %d unusable station records", source.brand, skipped)

        return SourceResult(stations=stations, last_updated=last_updated)

    def _normalize_record(
        self,
        record: Any,
        source: FuelSource,
        last_updated: str | None,
    ) -> FuelStation | None:
        if not isinstance(record, dict):
            return None

        raw_id = record.get("site_id")
        if raw_id is None or isinstance(raw_id, bool) or str(raw_id).strip() == "":
            return None

        try:
            return FuelStation(
                site_id=f"{source.prefix}-{str(raw_id).strip()}",
                brand=source.brand,
                address=_text_or_empty(record.get("address")),
                postcode=_text_or_empty(record.get("postcode")),
                location=_parse_location(record.get("location")),
                prices=_parse_prices(record.get("prices")),
                last_updated=last_updated,
            )
        except ValidationError as e:
            logger.debug("%s: rejected record %r: %s", source.brand, raw_id, e)
            return None


def _text_or_none(value: Any) -> str | None:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _text_or_empty(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _parse_location(value: Any) -> Location | None:
    """Build a Location if both coordinates are finite numbers."""
    if not isinstance(value, dict):
        return None
    lat = _as_number(value.get("latitude"))
    lon = _as_number(value.get("longitude"))
    if lat is None or lon is None:
        return None
    return Location(latitude=lat, longitude=lon)


def _parse_prices(value: Any) -> dict[FuelType, float]:
    """Keep known fuel codes with finite, non-negative numeric prices."""
    if not isinstance(value, dict):
        return {}
    prices: dict[FuelType, float] = {}
    for code, raw_price in value.items():
        fuel_type = _FUEL_CODES.get(str(code).upper())
        if fuel_type is None:
            continue
        price = _as_number(raw_price)
        if price is None or price < 0:
            continue
        prices[fuel_type] = price
    return prices


def _as_number(value: Any) -> float | None:
    # bool is an int subclass; a boolean price is never meaningful.
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip())
        except ValueError:
            return None
    else:
        return None
    if not math.isfinite(number):
        return None
    return number
