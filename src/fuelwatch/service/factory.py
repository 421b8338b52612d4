"""Wire a PriceService from configuration."""

from __future__ import annotations

from fuelwatch.core.config import FuelwatchConfig
from fuelwatch.ingestion.aggregator import Aggregator
from fuelwatch.service.facade import PriceService
from fuelwatch.storage.cache import SqliteCacheStore
from fuelwatch.storage.history import SqliteHistoryStore


def create_service(
    config: FuelwatchConfig,
    *,
    background_refresh: bool = True,
) -> PriceService:
    """Build an unstarted PriceService from config.

    ``background_refresh=False`` disables the periodic refresh regardless
    of config; one-shot CLI commands use it.
    """
    service_config = config.service
    if not background_refresh:
        service_config = service_config.model_copy(update={"refresh_interval_seconds": 0})

    history = SqliteHistoryStore(config.history) if config.history.enabled else None
    return PriceService(
        aggregator=Aggregator(config.fetch),
        cache=SqliteCacheStore(config.cache),
        history=history,
        config=service_config,
        record_history=config.history.record_on_refresh,
    )
