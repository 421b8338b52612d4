"""Tests for the SQLite cache store."""

import json

import pytest

from fuelwatch.core.config import CacheConfig
from fuelwatch.core.exceptions import StorageError
from fuelwatch.core.models import FuelType
from fuelwatch.storage.cache import CACHE_KEY, CacheStore, SqliteCacheStore


# --- Fixtures ---


@pytest.fixture
async def cache(clock):
    """Create an in-memory SqliteCacheStore on a fake clock."""
    store = SqliteCacheStore(CacheConfig(sqlite_path=":memory:"), clock=clock)
    await store.initialize()
    yield store
    await store.close()


async def _put_raw(store: SqliteCacheStore, value: str) -> None:
    await store._db.execute(
        "INSERT OR REPLACE INTO kv_cache (key, value) VALUES (?, ?)", (CACHE_KEY, value)
    )
    await store._db.commit()


# --- Tests ---


class TestProtocol:
    def test_satisfies_protocol(self):
        assert isinstance(SqliteCacheStore(CacheConfig(sqlite_path=":memory:")), CacheStore)


class TestReadWrite:
    async def test_empty_read_is_miss(self, cache):
        assert await cache.read() is None

    async def test_write_then_read(self, cache, clock, make_station):
        stations = [make_station("alpha-1"), make_station("alpha-2", postcode="M1 1AA")]
        written = await cache.write(stations, "2024-01-02T09:00:00Z")

        entry = await cache.read()
        assert entry is not None
        assert entry.data == stations
        assert entry.source_last_updated == "2024-01-02T09:00:00Z"
        assert entry.fetched_at == pytest.approx(clock.now)
        assert entry == written

    async def test_write_replaces(self, cache, make_station):
        await cache.write([make_station("alpha-1")], None)
        await cache.write([make_station("beta-1")], None)
        entry = await cache.read()
        assert [s.site_id for s in entry.data] == ["beta-1"]

    async def test_record_format(self, cache, clock, make_station):
        await cache.write([make_station()], "2024-01-02T09:00:00Z")
        async with cache._db.execute(
            "SELECT value FROM kv_cache WHERE key = ?", (CACHE_KEY,)
        ) as cursor:
            row = await cursor.fetchone()
        raw = json.loads(row["value"])
        assert set(raw) == {"data", "timestamp", "lastUpdated"}
        assert raw["timestamp"] == round(clock.now * 1000)
        assert raw["data"][0]["prices"]["E10"] == 135.9

    async def test_prices_survive_round_trip(self, cache, make_station):
        await cache.write([make_station(prices={FuelType.SDV: 159.9})], None)
        entry = await cache.read()
        assert entry.data[0].price(FuelType.SDV) == 159.9

    async def test_clear(self, cache, make_station):
        await cache.write([make_station()], None)
        await cache.clear()
        assert await cache.read() is None

    async def test_persists_across_connections(self, tmp_path, clock, make_station):
        config = CacheConfig(sqlite_path=str(tmp_path / "sub" / "cache.db"))
        first = SqliteCacheStore(config, clock=clock)
        await first.initialize()
        await first.write([make_station()], None)
        await first.close()

        second = SqliteCacheStore(config, clock=clock)
        await second.initialize()
        try:
            entry = await second.read()
        finally:
            await second.close()
        assert entry is not None and len(entry.data) == 1


class TestCorruptRecords:
    @pytest.mark.parametrize(
        "value",
        [
            "{not json",
            "[]",
            json.dumps({"data": []}),
            json.dumps({"data": [], "timestamp": "yesterday"}),
            json.dumps({"data": [{"brand": "no site id"}], "timestamp": 1}),
            json.dumps({"data": "nope", "timestamp": 1}),
        ],
    )
    async def test_corrupt_record_is_miss(self, cache, value):
        await _put_raw(cache, value)
        assert await cache.read() is None

    async def test_corrupt_record_overwritten_by_write(self, cache, make_station):
        await _put_raw(cache, "{garbage")
        await cache.write([make_station()], None)
        assert (await cache.read()) is not None


class TestValidity:
    async def test_valid_just_before_ttl(self, cache, clock, make_station):
        entry = await cache.write([make_station()], None)
        clock.advance(14 * 60 + 59)
        assert cache.is_valid(entry)

    async def test_invalid_just_after_ttl(self, cache, clock, make_station):
        entry = await cache.write([make_station()], None)
        clock.advance(15 * 60 + 1)
        assert not cache.is_valid(entry)

    async def test_invalid_exactly_at_ttl(self, cache, clock, make_station):
        entry = await cache.write([make_station()], None)
        clock.advance(15 * 60)
        assert not cache.is_valid(entry)

    async def test_ttl_exposed(self, cache):
        assert cache.ttl_seconds == 900


class TestErrors:
    async def test_read_on_closed_store_raises(self, clock):
        store = SqliteCacheStore(CacheConfig(sqlite_path=":memory:"), clock=clock)
        await store.initialize()
        await store.close()
        with pytest.raises(StorageError) as exc_info:
            await store.read()
        assert exc_info.value.context["operation"] == "read"

    async def test_write_on_closed_store_raises(self, clock, make_station):
        store = SqliteCacheStore(CacheConfig(sqlite_path=":memory:"), clock=clock)
        with pytest.raises(StorageError):
            await store.write([make_station()], None)
