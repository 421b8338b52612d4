"""Custom exception hierarchy for fuelwatch."""

from typing import Any


class FuelwatchError(Exception):
    """Base exception for all fuelwatch errors.

    All exceptions carry an optional `context` dict for structured error
    metadata that can be logged or serialized without parsing the message.
    """

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = context or {}


class ConfigError(FuelwatchError):
    """Invalid or missing configuration.

    Raised by load_config() during startup. Should be treated as fatal.

    Context keys:
        field (str): the config field that failed validation
        value (Any): the invalid value
    """


class SourceError(FuelwatchError):
    """A single retailer feed could not be used.

    Policy: log and skip the source. Other sources in the same
    aggregation pass are unaffected. Never raised to facade callers.

    Context keys:
        brand (str): the retailer whose feed failed
        url (str): the feed URL
    """


class SourceFetchError(SourceError):
    """Network error, timeout, or non-200 response from a feed.

    Context keys:
        status_code (int | None): HTTP status if a response arrived
        timeout (float | None): the per-source timeout that elapsed
    """


class SourceFormatError(SourceError):
    """Feed responded but the payload is not usable JSON of the expected shape.

    Context keys:
        reason (str): what was wrong with the payload
    """


class StorageError(FuelwatchError):
    """Cache or history database operation failed.

    Policy: raise immediately. The caller that triggered the operation
    sees the failure; previously stored data is left untouched.

    Context keys:
        operation (str): "read", "write", "query", "migrate", etc.
        table (str): the table involved
    """


class AggregationError(FuelwatchError):
    """A refresh could not produce a result at all.

    Policy: surfaced to the single fetch_fuel_prices() call that
    triggered the refresh. The existing cache remains in place.

    Context keys:
        stage (str): "aggregate", "cache_write", etc.
        failed_sources (list[str]): brands that failed, when every source did
    """
