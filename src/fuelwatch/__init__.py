"""fuelwatch: UK fuel-price aggregation, caching and analytics."""

__version__ = "0.1.0"
