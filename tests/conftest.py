"""Shared pytest fixtures for fuelwatch."""

import pytest

from fuelwatch.core.config import (
    CacheConfig,
    FetchConfig,
    FuelwatchConfig,
    HistoryConfig,
    ServiceConfig,
)
from fuelwatch.core.models import FuelSource, FuelStation, FuelType, Location


class FakeClock:
    """Settable epoch-seconds clock."""

    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_sources() -> list[FuelSource]:
    return [
        FuelSource(brand="Alpha", url="https://alpha.example.test/fuel.json", prefix="alpha"),
        FuelSource(brand="Beta", url="https://beta.example.test/fuel.json", prefix="beta"),
        FuelSource(brand="Gamma", url="https://gamma.example.test/fuel.json", prefix="gamma"),
    ]


@pytest.fixture
def fetch_config(test_sources) -> FetchConfig:
    return FetchConfig(timeout_seconds=2.0, sources=test_sources)


@pytest.fixture
def make_station():
    """Factory for FuelStation with overridable defaults."""

    def _make(site_id="alpha-1", **overrides):
        defaults = dict(
            site_id=site_id,
            brand="Alpha",
            address="1 High Street, London",
            postcode="SW1A 1AA",
            location=Location(latitude=51.501, longitude=-0.141),
            prices={FuelType.E10: 135.9, FuelType.B7: 142.9},
            last_updated="2024-01-02T09:00:00Z",
        )
        defaults.update(overrides)
        return FuelStation(**defaults)

    return _make


@pytest.fixture
def make_feed():
    """Factory for a raw retailer payload in the shared feed schema."""

    def _make(*records, last_updated="2024-01-02T09:00:00Z"):
        payload = {"stations": list(records)}
        if last_updated is not None:
            payload["last_updated"] = last_updated
        return payload

    return _make


@pytest.fixture
def feed_record():
    """Factory for one raw station record."""

    def _make(site_id="1", postcode="SW1A 1AA", prices=None, lat=51.501, lon=-0.141):
        return {
            "site_id": site_id,
            "brand": "ignored",
            "address": "1 High Street",
            "postcode": postcode,
            "location": {"latitude": lat, "longitude": lon},
            "prices": prices if prices is not None else {"E10": 135.9, "B7": 142.9},
        }

    return _make


@pytest.fixture
def memory_config(fetch_config) -> FuelwatchConfig:
    """Full config with in-memory stores and no background refresh."""
    return FuelwatchConfig(
        fetch=fetch_config,
        cache=CacheConfig(sqlite_path=":memory:"),
        history=HistoryConfig(sqlite_path=":memory:"),
        service=ServiceConfig(refresh_interval_seconds=0),
    )
