"""Built-in table of UK retailer price feeds.

Every retailer taking part in the CMA interim fuel-price transparency
scheme publishes the same JSON shape, so a feed is fully described by
its URL, its display brand, and the prefix used to namespace its site
IDs. Adding a retailer means adding one row here (or in config).
"""

from __future__ import annotations

from fuelwatch.core.models import FuelSource

DEFAULT_SOURCES: tuple[FuelSource, ...] = (
    FuelSource(
        brand="ASDA",
        url="https://storelocator.asda.com/fuel_prices_data.json",
        prefix="asda",
    ),
    FuelSource(
        brand="BP",
        url="https://www.bp.com/en_gb/united-kingdom/home/fuelprices/fuel_prices_data.json",
        prefix="bp",
    ),
    FuelSource(
        brand="Morrisons",
        url="https://www.morrisons.com/fuel-prices/fuel.json",
        prefix="morrisons",
    ),
    FuelSource(
        brand="Sainsburys",
        url="https://api.sainsburys.co.uk/v1/exports/latest/fuel_prices_data.json",
        prefix="sainsburys",
    ),
    FuelSource(
        brand="Tesco",
        url="https://www.tesco.com/fuel_prices/fuel_prices_data.json",
        prefix="tesco",
    ),
    FuelSource(
        brand="Moto",
        url="https://moto-way.com/fuel-price/fuel_prices.json",
        prefix="moto",
    ),
    FuelSource(
        brand="MFG",
        url="https://fuel.motorfuelgroup.com/fuel_prices_data.json",
        prefix="mfg",
    ),
    FuelSource(
        brand="Rontec",
        url="https://www.rontec-servicestations.co.uk/fuel-prices/data/fuel_prices_data.json",
        prefix="rontec",
    ),
    FuelSource(
        brand="Applegreen",
        url="https://applegreenstores.com/fuel-prices/data.json",
        prefix="applegreen",
    ),
    FuelSource(
        brand="Esso",
        url="https://fuelprices.esso.co.uk/latestdata.json",
        prefix="esso",
    ),
    FuelSource(
        brand="Jet",
        url="https://jetlocal.co.uk/fuel_prices_data.json",
        prefix="jet",
    ),
    FuelSource(
        brand="SGN",
        url="https://www.sgnretail.uk/files/data/SGN_daily_fuel_prices.json",
        prefix="sgn",
    ),
)


def find_source(sources: tuple[FuelSource, ...] | list[FuelSource], key: str) -> FuelSource | None:
    """Look up a source by brand or prefix (case-insensitive)."""
    needle = key.strip().lower()
    for source in sources:
        if source.prefix == needle or source.brand.lower() == needle:
            return source
    return None
