"""Price service facade, its factory, and the background refresh."""

from fuelwatch.service.facade import PriceService
from fuelwatch.service.factory import create_service
from fuelwatch.service.scheduler import RefreshScheduler

__all__ = [
    "PriceService",
    "RefreshScheduler",
    "create_service",
]
