"""fuelwatch.core: Foundation types, config, and exceptions."""

from fuelwatch.core.config import (
    APIConfig,
    CacheConfig,
    FetchConfig,
    FuelwatchConfig,
    HistoryConfig,
    LoggingConfig,
    ServiceConfig,
    load_config,
)
from fuelwatch.core.exceptions import (
    AggregationError,
    ConfigError,
    FuelwatchError,
    SourceError,
    SourceFetchError,
    SourceFormatError,
    StorageError,
)
from fuelwatch.core.models import (
    AggregationResult,
    Brand,
    CacheEntry,
    FuelSource,
    FuelStation,
    FuelType,
    HistoricalPricePoint,
    Location,
    PriceHistory,
    PricePoint,
    PriceSummary,
    RankedStation,
    RegionName,
    RegionPrice,
    SiteId,
    SourceReport,
    SourceResult,
)
from fuelwatch.core.timestamps import latest_timestamp, parse_timestamp

__all__ = [
    # Type aliases
    "SiteId",
    "Brand",
    "RegionName",
    # Enums
    "FuelType",
    # Source models
    "FuelSource",
    "SourceResult",
    "SourceReport",
    "AggregationResult",
    # Station models
    "Location",
    "FuelStation",
    "CacheEntry",
    # History models
    "HistoricalPricePoint",
    "PricePoint",
    "PriceHistory",
    # Analytics models
    "RegionPrice",
    "RankedStation",
    "PriceSummary",
    # Config
    "FuelwatchConfig",
    "FetchConfig",
    "CacheConfig",
    "HistoryConfig",
    "ServiceConfig",
    "APIConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "FuelwatchError",
    "ConfigError",
    "SourceError",
    "SourceFetchError",
    "SourceFormatError",
    "StorageError",
    "AggregationError",
    # Timestamps
    "parse_timestamp",
    "latest_timestamp",
]
